from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ..errors import NotFoundError
from ..gaql import build_query, date_condition, id_equals, not_removed, resource_name
from ..normalize import count, ident, last_segment, money, number, pick, texts
from ..pipeline import Mutation, Query, Tool
from ..schema import ReportRangeAllTime, ResourceId, Status, ToolArgs


class Headline(ToolArgs):
    text: str = Field(min_length=1, max_length=30)
    pinned_field: Optional[Literal["HEADLINE_1", "HEADLINE_2", "HEADLINE_3"]] = None


class Description(ToolArgs):
    text: str = Field(min_length=1, max_length=90)
    pinned_field: Optional[Literal["DESCRIPTION_1", "DESCRIPTION_2"]] = None


class ListAdsArgs(ToolArgs):
    ad_group_id: Optional[ResourceId] = Field(None, description="Filter by ad group ID (optional)")
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by campaign ID (optional)")
    limit: int = Field(100, ge=1, le=10000, description="Maximum number of ads to return")
    include_removed: bool = Field(False, description="Include removed ads")


class CreateResponsiveSearchAdArgs(ToolArgs):
    ad_group_id: ResourceId = Field(description="Ad group ID to create the ad in")
    headlines: List[Headline] = Field(min_length=3, max_length=15, description="Headlines (3-15, max 30 chars each)")
    descriptions: List[Description] = Field(
        min_length=2, max_length=4, description="Descriptions (2-4, max 90 chars each)",
    )
    path1: Optional[str] = Field(None, max_length=15, description="First display URL path")
    path2: Optional[str] = Field(None, max_length=15, description="Second display URL path")
    final_urls: List[str] = Field(min_length=1, description="Landing page URLs")
    final_mobile_urls: Optional[List[str]] = Field(None, description="Mobile landing page URLs")
    tracking_url_template: Optional[str] = Field(None, description="Tracking URL template")


class UpdateAdArgs(ToolArgs):
    ad_id: ResourceId = Field(description="Ad ID")
    ad_group_id: ResourceId = Field(description="Ad group ID the ad belongs to")
    status: Status = Field(description="New ad status")


class AdPerformanceArgs(ToolArgs):
    ad_id: ResourceId = Field(description="Ad ID")
    ad_group_id: ResourceId = Field(description="Ad group ID the ad belongs to")
    date_range: ReportRangeAllTime = Field("LAST_30_DAYS", description="Date range for metrics")


# ---------- list_ads ----------


def _build_list(args: ListAdsArgs, ctx) -> Query:
    gaql = build_query(
        [
            "ad_group_ad.ad.id",
            "ad_group_ad.ad.name",
            "ad_group_ad.ad.type",
            "ad_group_ad.status",
            "ad_group_ad.ad_group",
            "ad_group.name",
            "campaign.id",
            "campaign.name",
            "ad_group_ad.ad.responsive_search_ad.headlines",
            "ad_group_ad.ad.responsive_search_ad.descriptions",
            "ad_group_ad.ad.responsive_search_ad.path1",
            "ad_group_ad.ad.responsive_search_ad.path2",
            "ad_group_ad.ad.final_urls",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.ctr",
            "metrics.average_cpc",
        ],
        "ad_group_ad",
        [
            id_equals("ad_group.id", args.ad_group_id),
            id_equals("campaign.id", args.campaign_id),
            None if args.include_removed else not_removed("ad_group_ad.status"),
        ],
        order_by="ad_group_ad.ad.id",
        direction="DESC",
        limit=args.limit,
    )
    return Query(gaql)


def _normalize_list(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "id": ident(r, "ad_group_ad.ad.id"),
            "name": pick(r, "ad_group_ad.ad.name"),
            "type": pick(r, "ad_group_ad.ad.type"),
            "status": pick(r, "ad_group_ad.status"),
            "adGroupId": last_segment(pick(r, "ad_group_ad.ad_group")),
            "adGroupName": pick(r, "ad_group.name"),
            "campaignId": ident(r, "campaign.id"),
            "campaignName": pick(r, "campaign.name"),
            "headlines": texts(pick(r, "ad_group_ad.ad.responsive_search_ad.headlines")),
            "descriptions": texts(pick(r, "ad_group_ad.ad.responsive_search_ad.descriptions")),
            "path1": pick(r, "ad_group_ad.ad.responsive_search_ad.path1"),
            "path2": pick(r, "ad_group_ad.ad.responsive_search_ad.path2"),
            "finalUrls": list(pick(r, "ad_group_ad.ad.final_urls", [])),
            "metrics": {
                "impressions": count(r, "metrics.impressions"),
                "clicks": count(r, "metrics.clicks"),
                "cost": money(r, "metrics.cost_micros"),
                "conversions": number(r, "metrics.conversions"),
                "ctr": number(r, "metrics.ctr"),
                "averageCpc": money(r, "metrics.average_cpc"),
            },
        }
        for r in rows
    ]


# ---------- create_responsive_search_ad ----------


def _asset(item) -> Dict[str, Any]:
    asset = {"text": item.text}
    if item.pinned_field:
        asset["pinned_field"] = item.pinned_field
    return asset


def _build_create(args: CreateResponsiveSearchAdArgs, ctx) -> Mutation:
    rsa: Dict[str, Any] = {
        "headlines": [_asset(h) for h in args.headlines],
        "descriptions": [_asset(d) for d in args.descriptions],
    }
    if args.path1:
        rsa["path1"] = args.path1
    if args.path2:
        rsa["path2"] = args.path2

    ad: Dict[str, Any] = {"responsive_search_ad": rsa, "final_urls": list(args.final_urls)}
    if args.final_mobile_urls:
        ad["final_mobile_urls"] = list(args.final_mobile_urls)
    if args.tracking_url_template:
        ad["tracking_url_template"] = args.tracking_url_template

    ad_group_ad = {
        "ad_group": resource_name(ctx.customer_id, "adGroups", args.ad_group_id),
        "status": "ENABLED",
        "ad": ad,
    }
    return Mutation([{"ad_group_ad_operation": {"create": ad_group_ad}}])


def _normalize_create(_args, resource_names: List[str]) -> Dict[str, Any]:
    rn = resource_names[0]
    return {"success": True, "adId": last_segment(rn, "~"), "resourceName": rn}


# ---------- update_ad ----------


def _build_update(args: UpdateAdArgs, ctx) -> Mutation:
    rn = resource_name(ctx.customer_id, "adGroupAds", args.ad_group_id, args.ad_id)
    return Mutation([{"ad_group_ad_operation": {
        "update": {"resource_name": rn, "status": args.status},
        "update_mask": {"paths": ["status"]},
    }}])


def _normalize_update(_args, resource_names: List[str]) -> Dict[str, Any]:
    return {"success": True, "resourceName": resource_names[0]}


# ---------- get_ad_performance ----------


def _build_performance(args: AdPerformanceArgs, ctx) -> Query:
    gaql = build_query(
        [
            "ad_group_ad.ad.id",
            "ad_group_ad.ad.name",
            "ad_group_ad.ad.type",
            "ad_group_ad.status",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.conversions_value",
            "metrics.ctr",
            "metrics.average_cpc",
            "metrics.average_cpm",
            "metrics.conversions_from_interactions_rate",
            "metrics.cost_per_conversion",
            "metrics.value_per_conversion",
            "metrics.all_conversions",
            "metrics.all_conversions_value",
        ],
        "ad_group_ad",
        [
            id_equals("ad_group_ad.ad.id", args.ad_id),
            id_equals("ad_group.id", args.ad_group_id),
            date_condition(args.date_range),
        ],
    )
    return Query(gaql)


def _normalize_performance(args: AdPerformanceArgs, rows) -> Dict[str, Any]:
    if not rows:
        raise NotFoundError(f"Ad not found: {args.ad_group_id}~{args.ad_id}")
    r = rows[0]
    return {
        "id": ident(r, "ad_group_ad.ad.id"),
        "name": pick(r, "ad_group_ad.ad.name"),
        "type": pick(r, "ad_group_ad.ad.type"),
        "status": pick(r, "ad_group_ad.status"),
        "dateRange": args.date_range,
        "metrics": {
            "impressions": count(r, "metrics.impressions"),
            "clicks": count(r, "metrics.clicks"),
            "cost": money(r, "metrics.cost_micros"),
            "conversions": number(r, "metrics.conversions"),
            "conversionsValue": number(r, "metrics.conversions_value"),
            "ctr": number(r, "metrics.ctr"),
            "averageCpc": money(r, "metrics.average_cpc"),
            "averageCpm": money(r, "metrics.average_cpm"),
            "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
            "costPerConversion": money(r, "metrics.cost_per_conversion"),
            "valuePerConversion": number(r, "metrics.value_per_conversion"),
            "allConversions": number(r, "metrics.all_conversions"),
            "allConversionsValue": number(r, "metrics.all_conversions_value"),
        },
    }


TOOLS = [
    Tool(
        name="list_ads",
        description="List ads with their performance metrics",
        args=ListAdsArgs,
        build=_build_list,
        normalize=_normalize_list,
        failure="Failed to list ads",
    ),
    Tool(
        name="create_responsive_search_ad",
        description="Create a responsive search ad in an ad group",
        args=CreateResponsiveSearchAdArgs,
        build=_build_create,
        normalize=_normalize_create,
        failure="Failed to create ad",
    ),
    Tool(
        name="update_ad",
        description="Update the status of an ad",
        args=UpdateAdArgs,
        build=_build_update,
        normalize=_normalize_update,
        failure="Failed to update ad",
    ),
    Tool(
        name="get_ad_performance",
        description="Get detailed performance metrics for a specific ad",
        args=AdPerformanceArgs,
        build=_build_performance,
        normalize=_normalize_performance,
        failure="Failed to get ad performance",
    ),
]
