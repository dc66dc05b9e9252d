from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ..gaql import build_query, closed_mapping, date_condition, id_equals, not_removed, to_micros
from ..normalize import count, exclude_seen, ident, money, money_or_none, number, pick, safe_div
from ..pipeline import Query, QueryBatch, Tool
from ..schema import OpportunityRange, ReportRange, ResourceId, ToolArgs


class KeywordMetric(str, Enum):
    COST = "COST"
    CLICKS = "CLICKS"
    CONVERSIONS = "CONVERSIONS"
    CTR = "CTR"
    CONVERSION_RATE = "CONVERSION_RATE"
    CPC = "CPC"
    QUALITY_SCORE = "QUALITY_SCORE"


class ComparisonMetric(str, Enum):
    COST = "COST"
    CLICKS = "CLICKS"
    CONVERSIONS = "CONVERSIONS"
    ROAS = "ROAS"
    CPA = "CPA"


KEYWORD_ORDER_FIELDS = closed_mapping(KeywordMetric, {
    KeywordMetric.COST: "metrics.cost_micros",
    KeywordMetric.CLICKS: "metrics.clicks",
    KeywordMetric.CONVERSIONS: "metrics.conversions",
    KeywordMetric.CTR: "metrics.ctr",
    KeywordMetric.CONVERSION_RATE: "metrics.conversions_from_interactions_rate",
    KeywordMetric.CPC: "metrics.average_cpc",
    KeywordMetric.QUALITY_SCORE: "ad_group_criterion.quality_info.quality_score",
})

KEYWORD_METRIC_KEYS = closed_mapping(KeywordMetric, {
    KeywordMetric.COST: "cost",
    KeywordMetric.CLICKS: "clicks",
    KeywordMetric.CONVERSIONS: "conversions",
    KeywordMetric.CTR: "ctr",
    KeywordMetric.CONVERSION_RATE: "conversionRate",
    KeywordMetric.CPC: "averageCpc",
    KeywordMetric.QUALITY_SCORE: "qualityScore",
})

COMPARISON_ORDER_FIELDS = closed_mapping(ComparisonMetric, {
    ComparisonMetric.COST: "metrics.cost_micros",
    ComparisonMetric.CLICKS: "metrics.clicks",
    ComparisonMetric.CONVERSIONS: "metrics.conversions",
    ComparisonMetric.ROAS: "metrics.conversions_value_per_cost",
    ComparisonMetric.CPA: "metrics.cost_per_conversion",
})

# zero is a real quality score, so it stays in the bottom list
ZERO_IS_MEANINGFUL = frozenset({KeywordMetric.QUALITY_SCORE})


class TopBottomKeywordsArgs(ToolArgs):
    metric: KeywordMetric = Field(description="Metric to rank keywords by")
    date_range: ReportRange = Field("LAST_30_DAYS", description="Date range for analysis")
    top_count: int = Field(20, ge=1, le=1000, description="Number of top performers to return")
    bottom_count: int = Field(20, ge=1, le=1000, description="Number of bottom performers to return")
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by specific campaign ID (optional)")
    ad_group_id: Optional[ResourceId] = Field(None, description="Filter by specific ad group ID (optional)")
    include_negative: bool = Field(False, description="Include negative keywords in analysis")


class KeywordOpportunitiesArgs(ToolArgs):
    date_range: OpportunityRange = Field("LAST_30_DAYS", description="Date range for analysis")
    min_impressions: int = Field(100, ge=0, description="Minimum impressions threshold")
    max_cost_per_conversion: Optional[float] = Field(
        None, gt=0, description="Maximum acceptable cost per conversion (account currency)",
    )
    min_conversion_rate: Optional[float] = Field(
        None, ge=0, description="Minimum conversion rate (fraction of interactions, e.g. 0.05)",
    )


class CampaignComparisonArgs(ToolArgs):
    date_range: ReportRange = Field("LAST_30_DAYS", description="Date range for comparison")
    metric: Literal["COST", "CLICKS", "CONVERSIONS", "ROAS", "CPA"] = Field(
        "CONVERSIONS", description="Metric to sort campaigns by",
    )
    include_removed: bool = Field(False, description="Include removed campaigns in comparison")


# ---------- get_top_bottom_keywords ----------


def _keyword_key(r):
    return ident(r, "ad_group.id"), ident(r, "ad_group_criterion.criterion_id")


def _build_top_bottom(args: TopBottomKeywordsArgs, ctx) -> QueryBatch:
    field = KEYWORD_ORDER_FIELDS[args.metric]
    select = [
        "ad_group_criterion.criterion_id",
        "ad_group_criterion.keyword.text",
        "ad_group_criterion.keyword.match_type",
        "ad_group_criterion.status",
        "ad_group_criterion.negative",
        "ad_group_criterion.quality_info.quality_score",
        "ad_group.id",
        "ad_group.name",
        "campaign.name",
        "metrics.clicks",
        "metrics.impressions",
        "metrics.cost_micros",
        "metrics.conversions",
        "metrics.conversions_value",
        "metrics.ctr",
        "metrics.average_cpc",
        "metrics.conversions_from_interactions_rate",
        "metrics.cost_per_conversion",
    ]
    where = [
        id_equals("campaign.id", args.campaign_id),
        id_equals("ad_group.id", args.ad_group_id),
        None if args.include_negative else "ad_group_criterion.negative = FALSE",
        not_removed("ad_group_criterion.status"),
        date_condition(args.date_range),
    ]
    bottom_where = where if args.metric in ZERO_IS_MEANINGFUL else [*where, f"{field} > 0"]
    return QueryBatch({
        "top": Query(build_query(select, "keyword_view", where,
                                 order_by=field, direction="DESC", limit=args.top_count)),
        "bottom": Query(build_query(select, "keyword_view", bottom_where,
                                    order_by=field, direction="ASC", limit=args.bottom_count)),
    })


def _format_keyword(metric: KeywordMetric, r) -> Dict[str, Any]:
    quality = pick(r, "ad_group_criterion.quality_info.quality_score")
    metrics = {
        "clicks": count(r, "metrics.clicks"),
        "impressions": count(r, "metrics.impressions"),
        "cost": money(r, "metrics.cost_micros"),
        "conversions": number(r, "metrics.conversions"),
        "conversionsValue": number(r, "metrics.conversions_value"),
        "ctr": number(r, "metrics.ctr"),
        "averageCpc": money(r, "metrics.average_cpc"),
        "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
        "costPerConversion": money(r, "metrics.cost_per_conversion"),
    }
    ranked = {**metrics, "qualityScore": int(quality or 0)}
    return {
        "keywordId": ident(r, "ad_group_criterion.criterion_id"),
        "keyword": pick(r, "ad_group_criterion.keyword.text"),
        "matchType": pick(r, "ad_group_criterion.keyword.match_type"),
        "status": pick(r, "ad_group_criterion.status"),
        "isNegative": bool(pick(r, "ad_group_criterion.negative", False)),
        "qualityScore": quality,
        "adGroupId": ident(r, "ad_group.id"),
        "adGroupName": pick(r, "ad_group.name"),
        "campaignName": pick(r, "campaign.name"),
        "metricValue": ranked[KEYWORD_METRIC_KEYS[metric]],
        "metrics": metrics,
    }


def _normalize_top_bottom(args: TopBottomKeywordsArgs, results) -> Dict[str, Any]:
    top = results["top"]
    bottom = results["bottom"]
    if args.metric not in ZERO_IS_MEANINGFUL:
        bottom = exclude_seen(bottom, top, _keyword_key)
    return {
        "metric": args.metric.value,
        "dateRange": args.date_range,
        "topPerformers": [_format_keyword(args.metric, r) for r in top],
        "bottomPerformers": [_format_keyword(args.metric, r) for r in bottom],
    }


# ---------- get_keyword_opportunities ----------


def _build_opportunities(args: KeywordOpportunitiesArgs, ctx) -> QueryBatch:
    window = date_condition(args.date_range)
    search_terms = build_query(
        [
            "segments.search_term_match_type",
            "search_term_view.search_term",
            "campaign.name",
            "ad_group.name",
            "metrics.clicks",
            "metrics.impressions",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.conversions_value",
            "metrics.ctr",
            "metrics.conversions_from_interactions_rate",
            "metrics.cost_per_conversion",
        ],
        "search_term_view",
        [
            "search_term_view.status = 'NONE'",
            f"metrics.impressions >= {args.min_impressions}",
            (f"metrics.cost_per_conversion <= {to_micros(args.max_cost_per_conversion)}"
             if args.max_cost_per_conversion is not None else None),
            (f"metrics.conversions_from_interactions_rate >= {args.min_conversion_rate}"
             if args.min_conversion_rate is not None else None),
            window,
        ],
        order_by="metrics.conversions",
        direction="DESC",
        limit=50,
    )
    underperforming = build_query(
        [
            "ad_group_criterion.keyword.text",
            "ad_group_criterion.keyword.match_type",
            "ad_group_criterion.quality_info.quality_score",
            "campaign.name",
            "ad_group.name",
            "metrics.clicks",
            "metrics.impressions",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.ctr",
            "metrics.conversions_from_interactions_rate",
            "metrics.cost_per_conversion",
        ],
        "keyword_view",
        [
            "ad_group_criterion.status = 'ENABLED'",
            "ad_group_criterion.negative = FALSE",
            f"metrics.impressions >= {args.min_impressions}",
            "metrics.conversions = 0",
            "metrics.cost_micros > 0",
            window,
        ],
        order_by="metrics.cost_micros",
        direction="DESC",
        limit=30,
    )
    return QueryBatch({"search_terms": Query(search_terms), "underperforming": Query(underperforming)})


def _normalize_opportunities(args: KeywordOpportunitiesArgs, results) -> Dict[str, Any]:
    return {
        "dateRange": args.date_range,
        "newKeywordOpportunities": [
            {
                "searchTerm": pick(r, "search_term_view.search_term"),
                "matchType": pick(r, "segments.search_term_match_type"),
                "campaignName": pick(r, "campaign.name"),
                "adGroupName": pick(r, "ad_group.name"),
                "metrics": {
                    "clicks": count(r, "metrics.clicks"),
                    "impressions": count(r, "metrics.impressions"),
                    "cost": money(r, "metrics.cost_micros"),
                    "conversions": number(r, "metrics.conversions"),
                    "revenue": number(r, "metrics.conversions_value"),
                    "ctr": number(r, "metrics.ctr"),
                    "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
                    "costPerConversion": money(r, "metrics.cost_per_conversion"),
                },
                "recommendation": "Add as keyword - high performance search term",
            }
            for r in results["search_terms"]
        ],
        "underperformingKeywords": [
            {
                "keyword": pick(r, "ad_group_criterion.keyword.text"),
                "matchType": pick(r, "ad_group_criterion.keyword.match_type"),
                "qualityScore": pick(r, "ad_group_criterion.quality_info.quality_score"),
                "campaignName": pick(r, "campaign.name"),
                "adGroupName": pick(r, "ad_group.name"),
                "metrics": {
                    "clicks": count(r, "metrics.clicks"),
                    "impressions": count(r, "metrics.impressions"),
                    "cost": money(r, "metrics.cost_micros"),
                    "ctr": number(r, "metrics.ctr"),
                },
                "recommendation": "Consider pausing - no conversions with significant spend",
            }
            for r in results["underperforming"]
        ],
    }


# ---------- get_campaign_comparison ----------


def _build_comparison(args: CampaignComparisonArgs, ctx) -> Query:
    gaql = build_query(
        [
            "campaign.id",
            "campaign.name",
            "campaign.status",
            "campaign.advertising_channel_type",
            "campaign.bidding_strategy_type",
            "campaign_budget.amount_micros",
            "metrics.clicks",
            "metrics.impressions",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.conversions_value",
            "metrics.ctr",
            "metrics.conversions_from_interactions_rate",
            "metrics.cost_per_conversion",
            "metrics.search_impression_share",
            "metrics.search_rank_lost_impression_share",
            "metrics.search_budget_lost_impression_share",
        ],
        "campaign",
        [
            None if args.include_removed else not_removed("campaign.status"),
            date_condition(args.date_range),
        ],
        order_by=COMPARISON_ORDER_FIELDS[ComparisonMetric(args.metric)],
        direction="DESC",
    )
    return Query(gaql)


def _normalize_comparison(args: CampaignComparisonArgs, rows) -> Dict[str, Any]:
    campaigns = []
    for r in rows:
        cost = money(r, "metrics.cost_micros")
        revenue = number(r, "metrics.conversions_value")
        conversions = number(r, "metrics.conversions")
        campaigns.append({
            "id": ident(r, "campaign.id"),
            "name": pick(r, "campaign.name"),
            "status": pick(r, "campaign.status"),
            "type": pick(r, "campaign.advertising_channel_type"),
            "biddingStrategy": pick(r, "campaign.bidding_strategy_type"),
            "dailyBudget": money_or_none(r, "campaign_budget.amount_micros") or 0.0,
            "metrics": {
                "clicks": count(r, "metrics.clicks"),
                "impressions": count(r, "metrics.impressions"),
                "cost": cost,
                "conversions": conversions,
                "revenue": revenue,
                "ctr": number(r, "metrics.ctr"),
                "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
                "cpa": safe_div(cost, conversions),
                "roas": safe_div(revenue, cost),
                "searchImpressionShare": number(r, "metrics.search_impression_share"),
                "searchRankLostImpressionShare": number(r, "metrics.search_rank_lost_impression_share"),
                "searchBudgetLostImpressionShare": number(r, "metrics.search_budget_lost_impression_share"),
            },
        })

    totals: Dict[str, Any] = {
        key: sum(c["metrics"][key] for c in campaigns)
        for key in ("clicks", "impressions", "cost", "conversions", "revenue")
    }
    # ratios come from the sums, never from averaging per-campaign ratios
    totals["ctr"] = safe_div(totals["clicks"], totals["impressions"])
    totals["conversionRate"] = safe_div(totals["conversions"], totals["clicks"])
    totals["cpa"] = safe_div(totals["cost"], totals["conversions"])
    totals["roas"] = safe_div(totals["revenue"], totals["cost"])

    return {"dateRange": args.date_range, "sortedBy": args.metric, "totals": totals, "campaigns": campaigns}


TOOLS = [
    Tool(
        name="get_top_bottom_keywords",
        description="Get top and bottom performing keywords by various metrics",
        args=TopBottomKeywordsArgs,
        build=_build_top_bottom,
        normalize=_normalize_top_bottom,
        failure="Failed to get top/bottom keywords",
    ),
    Tool(
        name="get_keyword_opportunities",
        description="Find keyword opportunities based on search terms and underperforming keywords",
        args=KeywordOpportunitiesArgs,
        build=_build_opportunities,
        normalize=_normalize_opportunities,
        failure="Failed to get keyword opportunities",
    ),
    Tool(
        name="get_campaign_comparison",
        description="Compare all campaigns performance by various metrics",
        args=CampaignComparisonArgs,
        build=_build_comparison,
        normalize=_normalize_comparison,
        failure="Failed to get campaign comparison",
    ),
]
