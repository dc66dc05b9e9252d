from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ..gaql import build_query, closed_mapping, date_condition, id_equals
from ..normalize import count, exclude_seen, ident, money, number, pick, safe_div
from ..pipeline import Query, QueryBatch, Tool
from ..schema import Direction, ReportRange, ReportRangeAllTime, ResourceId, ToolArgs


class ProductMetric(str, Enum):
    COST = "COST"
    CLICKS = "CLICKS"
    CONVERSIONS = "CONVERSIONS"
    REVENUE = "REVENUE"
    ROAS = "ROAS"
    CTR = "CTR"
    CONVERSION_RATE = "CONVERSION_RATE"


PRODUCT_ORDER_FIELDS = closed_mapping(ProductMetric, {
    ProductMetric.COST: "metrics.cost_micros",
    ProductMetric.CLICKS: "metrics.clicks",
    ProductMetric.CONVERSIONS: "metrics.conversions",
    ProductMetric.REVENUE: "metrics.conversions_value",
    ProductMetric.ROAS: "metrics.conversions_value_per_cost",
    ProductMetric.CTR: "metrics.ctr",
    ProductMetric.CONVERSION_RATE: "metrics.conversions_from_interactions_rate",
})

# key of the ranked value inside a formatted product's "metrics"
PRODUCT_METRIC_KEYS = closed_mapping(ProductMetric, {
    ProductMetric.COST: "cost",
    ProductMetric.CLICKS: "clicks",
    ProductMetric.CONVERSIONS: "conversions",
    ProductMetric.REVENUE: "revenue",
    ProductMetric.ROAS: "roas",
    ProductMetric.CTR: "ctr",
    ProductMetric.CONVERSION_RATE: "conversionRate",
})


class ProductPerformanceArgs(ToolArgs):
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by campaign ID (optional)")
    date_range: ReportRangeAllTime = Field("LAST_30_DAYS", description="Date range for metrics")
    limit: int = Field(100, ge=1, le=10000, description="Maximum number of products to return")
    order_by: Literal["COST", "CLICKS", "CONVERSIONS", "REVENUE", "ROAS"] = Field(
        "COST", description="Metric to order products by",
    )
    order_direction: Direction = Field("DESC", description="Sort direction")


class ProductPartitionArgs(ToolArgs):
    ad_group_id: ResourceId = Field(description="Shopping ad group ID")
    date_range: ReportRangeAllTime = Field("LAST_30_DAYS", description="Date range for metrics")


class TopBottomProductsArgs(ToolArgs):
    metric: ProductMetric = Field(description="Metric to rank products by")
    date_range: ReportRange = Field("LAST_30_DAYS", description="Date range for analysis")
    top_count: int = Field(10, ge=1, le=1000, description="Number of top performers to return")
    bottom_count: int = Field(10, ge=1, le=1000, description="Number of bottom performers to return")
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by campaign ID (optional)")


def _product_metrics(r) -> Dict[str, Any]:
    cost = money(r, "metrics.cost_micros")
    revenue = number(r, "metrics.conversions_value")
    return {
        "clicks": count(r, "metrics.clicks"),
        "impressions": count(r, "metrics.impressions"),
        "cost": cost,
        "conversions": number(r, "metrics.conversions"),
        "revenue": revenue,
        "ctr": number(r, "metrics.ctr"),
        "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
        "roas": safe_div(revenue, cost),
    }


# ---------- get_product_performance ----------


def _build_products(args: ProductPerformanceArgs, ctx) -> Query:
    gaql = build_query(
        [
            "segments.product_item_id",
            "segments.product_title",
            "segments.product_type_l1",
            "segments.product_type_l2",
            "segments.product_type_l3",
            "segments.product_brand",
            "segments.product_custom_attribute0",
            "segments.product_custom_attribute1",
            "campaign.id",
            "campaign.name",
            "metrics.clicks",
            "metrics.impressions",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.conversions_value",
            "metrics.conversions_value_per_cost",
            "metrics.ctr",
            "metrics.average_cpc",
            "metrics.conversions_from_interactions_rate",
            "metrics.cost_per_conversion",
            "metrics.value_per_conversion",
        ],
        "shopping_performance_view",
        [id_equals("campaign.id", args.campaign_id), date_condition(args.date_range)],
        order_by=PRODUCT_ORDER_FIELDS[ProductMetric(args.order_by)],
        direction=args.order_direction,
        limit=args.limit,
    )
    return Query(gaql)


def _normalize_products(_args, rows) -> List[Dict[str, Any]]:
    out = []
    for r in rows:
        metrics = _product_metrics(r)
        metrics["averageCpc"] = money(r, "metrics.average_cpc")
        metrics["costPerConversion"] = money(r, "metrics.cost_per_conversion")
        metrics["valuePerConversion"] = number(r, "metrics.value_per_conversion")
        out.append({
            "productItemId": pick(r, "segments.product_item_id"),
            "productTitle": pick(r, "segments.product_title"),
            "productBrand": pick(r, "segments.product_brand"),
            "productType": {
                "level1": pick(r, "segments.product_type_l1"),
                "level2": pick(r, "segments.product_type_l2"),
                "level3": pick(r, "segments.product_type_l3"),
            },
            "customAttributes": {
                "attribute0": pick(r, "segments.product_custom_attribute0"),
                "attribute1": pick(r, "segments.product_custom_attribute1"),
            },
            "campaignId": ident(r, "campaign.id"),
            "campaignName": pick(r, "campaign.name"),
            "metrics": metrics,
        })
    return out


# ---------- get_product_partition_performance ----------


def _build_partitions(args: ProductPartitionArgs, ctx) -> Query:
    gaql = build_query(
        [
            "ad_group_criterion.resource_name",
            "ad_group_criterion.criterion_id",
            "ad_group_criterion.status",
            "ad_group_criterion.listing_group.type",
            "ad_group_criterion.listing_group.case_value.product_brand.value",
            "ad_group_criterion.listing_group.case_value.product_item_id.value",
            "ad_group_criterion.listing_group.case_value.product_type.value",
            "ad_group_criterion.listing_group.case_value.product_type.level",
            "ad_group_criterion.cpc_bid_micros",
            "metrics.clicks",
            "metrics.impressions",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.conversions_value",
            "metrics.ctr",
            "metrics.average_cpc",
            "metrics.conversions_from_interactions_rate",
        ],
        "ad_group_criterion",
        [
            id_equals("ad_group.id", args.ad_group_id),
            "ad_group_criterion.type = 'LISTING_GROUP'",
            date_condition(args.date_range),
        ],
        order_by="metrics.cost_micros",
        direction="DESC",
    )
    return Query(gaql)


def _normalize_partitions(_args, rows) -> List[Dict[str, Any]]:
    out = []
    for r in rows:
        case = pick(r, "ad_group_criterion.listing_group.case_value", {})
        bid = pick(r, "ad_group_criterion.cpc_bid_micros")
        metrics = _product_metrics(r)
        metrics["averageCpc"] = money(r, "metrics.average_cpc")
        out.append({
            "criterionId": ident(r, "ad_group_criterion.criterion_id"),
            "status": pick(r, "ad_group_criterion.status"),
            "listingGroupType": pick(r, "ad_group_criterion.listing_group.type"),
            "productBrand": pick(case, "product_brand.value"),
            "productItemId": pick(case, "product_item_id.value"),
            "productType": pick(case, "product_type.value"),
            "productTypeLevel": pick(case, "product_type.level"),
            "cpcBidMicros": None if bid is None else int(bid),
            "metrics": metrics,
        })
    return out


# ---------- get_top_bottom_products ----------


def _product_key(r):
    return pick(r, "segments.product_item_id"), ident(r, "campaign.id")


def _build_top_bottom(args: TopBottomProductsArgs, ctx) -> QueryBatch:
    field = PRODUCT_ORDER_FIELDS[args.metric]
    select = [
        "segments.product_item_id",
        "segments.product_title",
        "segments.product_brand",
        "campaign.id",
        "campaign.name",
        "metrics.clicks",
        "metrics.impressions",
        "metrics.cost_micros",
        "metrics.conversions",
        "metrics.conversions_value",
        "metrics.conversions_value_per_cost",
        "metrics.ctr",
        "metrics.conversions_from_interactions_rate",
    ]
    where = [id_equals("campaign.id", args.campaign_id), date_condition(args.date_range)]
    return QueryBatch({
        "top": Query(build_query(select, "shopping_performance_view", where,
                                 order_by=field, direction="DESC", limit=args.top_count)),
        "bottom": Query(build_query(select, "shopping_performance_view", [*where, f"{field} > 0"],
                                    order_by=field, direction="ASC", limit=args.bottom_count)),
    })


def _format_product(metric: ProductMetric, r) -> Dict[str, Any]:
    metrics = _product_metrics(r)
    return {
        "productItemId": pick(r, "segments.product_item_id"),
        "productTitle": pick(r, "segments.product_title"),
        "productBrand": pick(r, "segments.product_brand"),
        "campaignId": ident(r, "campaign.id"),
        "campaignName": pick(r, "campaign.name"),
        "metricValue": metrics[PRODUCT_METRIC_KEYS[metric]],
        "metrics": metrics,
    }


def _normalize_top_bottom(args: TopBottomProductsArgs, results) -> Dict[str, Any]:
    top = results["top"]
    bottom = exclude_seen(results["bottom"], top, _product_key)
    return {
        "metric": args.metric.value,
        "dateRange": args.date_range,
        "topPerformers": [_format_product(args.metric, r) for r in top],
        "bottomPerformers": [_format_product(args.metric, r) for r in bottom],
    }


TOOLS = [
    Tool(
        name="get_product_performance",
        description="Get performance data for products in shopping campaigns",
        args=ProductPerformanceArgs,
        build=_build_products,
        normalize=_normalize_products,
        failure="Failed to get product performance",
    ),
    Tool(
        name="get_product_partition_performance",
        description="Get performance data for product partitions (listing groups) in a shopping ad group",
        args=ProductPartitionArgs,
        build=_build_partitions,
        normalize=_normalize_partitions,
        failure="Failed to get product partition performance",
    ),
    Tool(
        name="get_top_bottom_products",
        description="Get top and bottom performing products by a chosen metric",
        args=TopBottomProductsArgs,
        build=_build_top_bottom,
        normalize=_normalize_top_bottom,
        failure="Failed to get top/bottom products",
    ),
]
