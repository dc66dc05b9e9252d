from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from ..errors import NotFoundError
from ..gaql import build_query, date_condition, id_equals
from ..normalize import count, ident, money, number, pick
from ..pipeline import Query, Tool
from ..schema import (
    DateWindowArgs, ExtendedRange, ReportRange, ReportRange14, ResourceId, SearchTermsRange, ToolArgs,
)


class AccountPerformanceArgs(DateWindowArgs):
    date_range: ExtendedRange = Field("LAST_30_DAYS", description="Date range for metrics")
    segment_by_date: bool = Field(False, description="Return one entry per day instead of a summary")


class CampaignPerformanceArgs(ToolArgs):
    campaign_id: ResourceId = Field(description="Campaign ID")
    date_range: ReportRange14 = Field("LAST_30_DAYS", description="Date range for metrics")
    segment_by_date: bool = Field(False, description="Return one entry per day instead of a summary")


class AdGroupPerformanceArgs(ToolArgs):
    ad_group_id: Optional[ResourceId] = Field(None, description="Filter by ad group ID (optional)")
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by campaign ID (optional)")
    date_range: ReportRange = Field("LAST_30_DAYS", description="Date range for metrics")
    limit: int = Field(50, ge=1, le=10000, description="Maximum number of ad groups to return")


class SearchTermsArgs(DateWindowArgs):
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by campaign ID (optional)")
    ad_group_id: Optional[ResourceId] = Field(None, description="Filter by ad group ID (optional)")
    date_range: SearchTermsRange = Field("LAST_7_DAYS", description="Date range for the report")
    limit: int = Field(100, ge=1, le=10000, description="Maximum number of search terms to return")
    min_impressions: int = Field(10, ge=0, description="Minimum impressions for a search term to be included")


BASE_METRICS = [
    "metrics.impressions",
    "metrics.clicks",
    "metrics.cost_micros",
    "metrics.conversions",
    "metrics.ctr",
    "metrics.average_cpc",
    "metrics.conversions_from_interactions_rate",
    "metrics.cost_per_conversion",
]


def _base_metrics(r) -> Dict[str, Any]:
    return {
        "impressions": count(r, "metrics.impressions"),
        "clicks": count(r, "metrics.clicks"),
        "cost": money(r, "metrics.cost_micros"),
        "conversions": number(r, "metrics.conversions"),
        "ctr": number(r, "metrics.ctr"),
        "avgCpc": money(r, "metrics.average_cpc"),
        "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
        "costPerConversion": money(r, "metrics.cost_per_conversion"),
    }


def _share_metrics(r) -> Dict[str, float]:
    return {
        "impressionShare": number(r, "metrics.search_impression_share"),
        "budgetLostImpressionShare": number(r, "metrics.search_budget_lost_impression_share"),
        "rankLostImpressionShare": number(r, "metrics.search_rank_lost_impression_share"),
    }


SHARE_METRICS = [
    "metrics.search_impression_share",
    "metrics.search_budget_lost_impression_share",
    "metrics.search_rank_lost_impression_share",
]


# ---------- get_account_performance ----------


def _build_account(args: AccountPerformanceArgs, ctx) -> Query:
    select = ["customer.descriptive_name", "customer.currency_code", "customer.id"]
    if args.segment_by_date:
        select.append("segments.date")
    gaql = build_query(
        select + BASE_METRICS + SHARE_METRICS,
        "customer",
        [date_condition(args.date_range, args.custom_date_range)],
        order_by="segments.date" if args.segment_by_date else None,
        direction="DESC",
    )
    return Query(gaql)


def _normalize_account(args: AccountPerformanceArgs, rows) -> Any:
    if args.segment_by_date:
        return [
            {"date": pick(r, "segments.date"), "metrics": {**_base_metrics(r), **_share_metrics(r)}}
            for r in rows
        ]
    # an account with no activity in the window still reports zeros
    summary = rows[0] if rows else {}
    return {
        "accountName": pick(summary, "customer.descriptive_name"),
        "customerId": ident(summary, "customer.id"),
        "currencyCode": pick(summary, "customer.currency_code"),
        "dateRange": args.date_range,
        "metrics": {**_base_metrics(summary), **_share_metrics(summary)},
    }


# ---------- get_campaign_performance ----------


def _build_campaign(args: CampaignPerformanceArgs, ctx) -> Query:
    select = ["campaign.id", "campaign.name"]
    if args.segment_by_date:
        select.append("segments.date")
    gaql = build_query(
        select + BASE_METRICS + [
            "metrics.conversions_value",
            "metrics.value_per_conversion",
            *SHARE_METRICS,
            "metrics.invalid_clicks",
            "metrics.invalid_click_rate",
        ],
        "campaign",
        [id_equals("campaign.id", args.campaign_id), date_condition(args.date_range)],
        order_by="segments.date" if args.segment_by_date else None,
        direction="DESC",
    )
    return Query(gaql)


def _campaign_metrics(r) -> Dict[str, Any]:
    return {
        **_base_metrics(r),
        "conversionsValue": number(r, "metrics.conversions_value"),
        "valuePerConversion": number(r, "metrics.value_per_conversion"),
        **_share_metrics(r),
        "invalidClicks": count(r, "metrics.invalid_clicks"),
        "invalidClickRate": number(r, "metrics.invalid_click_rate"),
    }


def _normalize_campaign(args: CampaignPerformanceArgs, rows) -> Dict[str, Any]:
    if not rows:
        raise NotFoundError(f"Campaign with ID {args.campaign_id} not found")
    if args.segment_by_date:
        return {
            "campaignId": args.campaign_id,
            "campaignName": pick(rows[0], "campaign.name"),
            "dateRange": args.date_range,
            "daily": [{"date": pick(r, "segments.date"), "metrics": _campaign_metrics(r)} for r in rows],
        }
    summary = rows[0]
    return {
        "campaignId": ident(summary, "campaign.id"),
        "campaignName": pick(summary, "campaign.name"),
        "dateRange": args.date_range,
        "metrics": _campaign_metrics(summary),
    }


# ---------- get_ad_group_performance ----------


def _build_ad_groups(args: AdGroupPerformanceArgs, ctx) -> Query:
    gaql = build_query(
        ["ad_group.id", "ad_group.name", "ad_group.status", "campaign.id", "campaign.name"] + BASE_METRICS,
        "ad_group",
        [
            date_condition(args.date_range),
            id_equals("ad_group.id", args.ad_group_id),
            id_equals("campaign.id", args.campaign_id),
        ],
        order_by="metrics.impressions",
        direction="DESC",
        limit=args.limit,
    )
    return Query(gaql)


def _normalize_ad_groups(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "id": ident(r, "ad_group.id"),
            "name": pick(r, "ad_group.name"),
            "status": pick(r, "ad_group.status"),
            "campaign": {"id": ident(r, "campaign.id"), "name": pick(r, "campaign.name")},
            "metrics": _base_metrics(r),
        }
        for r in rows
    ]


# ---------- get_search_terms_report ----------


def _build_search_terms(args: SearchTermsArgs, ctx) -> Query:
    gaql = build_query(
        [
            "search_term_view.search_term",
            "search_term_view.status",
            "campaign.id",
            "campaign.name",
            "ad_group.id",
            "ad_group.name",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.ctr",
            "metrics.average_cpc",
            "metrics.conversions_from_interactions_rate",
        ],
        "search_term_view",
        [
            date_condition(args.date_range, args.custom_date_range),
            f"metrics.impressions >= {args.min_impressions}",
            id_equals("campaign.id", args.campaign_id),
            id_equals("ad_group.id", args.ad_group_id),
        ],
        order_by="metrics.impressions",
        direction="DESC",
        limit=args.limit,
    )
    return Query(gaql)


def _normalize_search_terms(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "searchTerm": pick(r, "search_term_view.search_term"),
            "status": pick(r, "search_term_view.status"),
            "campaign": {"id": ident(r, "campaign.id"), "name": pick(r, "campaign.name")},
            "adGroup": {"id": ident(r, "ad_group.id"), "name": pick(r, "ad_group.name")},
            "metrics": {
                "impressions": count(r, "metrics.impressions"),
                "clicks": count(r, "metrics.clicks"),
                "cost": money(r, "metrics.cost_micros"),
                "conversions": number(r, "metrics.conversions"),
                "ctr": number(r, "metrics.ctr"),
                "avgCpc": money(r, "metrics.average_cpc"),
                "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
            },
        }
        for r in rows
    ]


TOOLS = [
    Tool(
        name="get_account_performance",
        description="Get overall account performance metrics",
        args=AccountPerformanceArgs,
        build=_build_account,
        normalize=_normalize_account,
        failure="Failed to get account performance",
    ),
    Tool(
        name="get_campaign_performance",
        description="Get detailed performance metrics for a campaign",
        args=CampaignPerformanceArgs,
        build=_build_campaign,
        normalize=_normalize_campaign,
        failure="Failed to get campaign performance",
    ),
    Tool(
        name="get_ad_group_performance",
        description="Get performance metrics for ad groups",
        args=AdGroupPerformanceArgs,
        build=_build_ad_groups,
        normalize=_normalize_ad_groups,
        failure="Failed to get ad group performance",
    ),
    Tool(
        name="get_search_terms_report",
        description="Get search terms report showing actual search queries that triggered ads",
        args=SearchTermsArgs,
        build=_build_search_terms,
        normalize=_normalize_search_terms,
        failure="Failed to get search terms report",
    ),
]
