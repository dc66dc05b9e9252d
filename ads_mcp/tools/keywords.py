from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from ..errors import NotFoundError
from ..gaql import build_query, date_condition, id_equals, resource_name
from ..normalize import count, ident, last_segment, money, money_or_none, number, pick
from ..pipeline import Mutation, Query, Tool
from ..schema import MatchType, Micros, ReportRange, ResourceId, Status, ToolArgs

KEYWORD_ONLY = "ad_group_criterion.type = 'KEYWORD'"
POSITIVE_ONLY = "ad_group_criterion.negative = FALSE"


class KeywordSpec(ToolArgs):
    text: str = Field(min_length=1, max_length=80)
    match_type: MatchType
    cpc_bid_micros: Optional[Micros] = None


class NegativeKeywordSpec(ToolArgs):
    text: str = Field(min_length=1, max_length=80)
    match_type: MatchType


class ListKeywordsArgs(ToolArgs):
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by campaign ID")
    ad_group_id: Optional[ResourceId] = Field(None, description="Filter by ad group ID")
    limit: int = Field(100, ge=1, le=10000, description="Maximum number of keywords to return")
    include_negative: bool = Field(False, description="Include negative keywords")


class AddKeywordsArgs(ToolArgs):
    ad_group_id: ResourceId = Field(description="Ad group ID to add keywords to")
    keywords: List[KeywordSpec] = Field(min_length=1, description="Keywords to add")


class AddNegativeKeywordsArgs(ToolArgs):
    campaign_id: Optional[ResourceId] = Field(None, description="Campaign ID (for campaign-level negatives)")
    ad_group_id: Optional[ResourceId] = Field(
        None, description="Ad group ID (for ad group-level negatives; wins over campaignId)",
    )
    keywords: List[NegativeKeywordSpec] = Field(min_length=1, description="Negative keywords to add")

    @model_validator(mode="after")
    def _needs_scope(self):
        if not (self.campaign_id or self.ad_group_id):
            raise ValueError("Either campaignId or adGroupId must be provided")
        return self


class UpdateKeywordArgs(ToolArgs):
    keyword_id: ResourceId = Field(description="Keyword (criterion) ID")
    ad_group_id: ResourceId = Field(description="Ad group ID the keyword belongs to")
    status: Optional[Status] = Field(None, description="New keyword status")
    cpc_bid_micros: Optional[Micros] = Field(None, description="New CPC bid in micros")

    @model_validator(mode="after")
    def _has_changes(self):
        self.ensure_any("status", "cpc_bid_micros")
        return self


class KeywordPerformanceArgs(ToolArgs):
    keyword_id: ResourceId = Field(description="Keyword (criterion) ID")
    ad_group_id: ResourceId = Field(description="Ad group ID the keyword belongs to")
    date_range: ReportRange = Field("LAST_30_DAYS", description="Date range for metrics")


# ---------- list_keywords ----------


def _build_list(args: ListKeywordsArgs, ctx) -> Query:
    gaql = build_query(
        [
            "ad_group_criterion.criterion_id",
            "ad_group_criterion.keyword.text",
            "ad_group_criterion.keyword.match_type",
            "ad_group_criterion.status",
            "ad_group_criterion.negative",
            "ad_group_criterion.cpc_bid_micros",
            "ad_group.id",
            "ad_group.name",
            "campaign.id",
            "campaign.name",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.ctr",
            "metrics.average_cpc",
        ],
        "ad_group_criterion",
        [
            KEYWORD_ONLY,
            None if args.include_negative else POSITIVE_ONLY,
            id_equals("campaign.id", args.campaign_id),
            id_equals("ad_group.id", args.ad_group_id),
        ],
        order_by="metrics.impressions",
        direction="DESC",
        limit=args.limit,
    )
    return Query(gaql)


def _normalize_list(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "id": ident(r, "ad_group_criterion.criterion_id"),
            "text": pick(r, "ad_group_criterion.keyword.text"),
            "matchType": pick(r, "ad_group_criterion.keyword.match_type"),
            "status": pick(r, "ad_group_criterion.status"),
            "isNegative": bool(pick(r, "ad_group_criterion.negative", False)),
            "cpcBid": money_or_none(r, "ad_group_criterion.cpc_bid_micros"),
            "adGroup": {"id": ident(r, "ad_group.id"), "name": pick(r, "ad_group.name")},
            "campaign": {"id": ident(r, "campaign.id"), "name": pick(r, "campaign.name")},
            "metrics": {
                "impressions": count(r, "metrics.impressions"),
                "clicks": count(r, "metrics.clicks"),
                "cost": money(r, "metrics.cost_micros"),
                "conversions": number(r, "metrics.conversions"),
                "ctr": number(r, "metrics.ctr"),
                "avgCpc": money(r, "metrics.average_cpc"),
            },
        }
        for r in rows
    ]


# ---------- add_keywords ----------


def _build_add(args: AddKeywordsArgs, ctx) -> Mutation:
    ad_group = resource_name(ctx.customer_id, "adGroups", args.ad_group_id)
    operations = []
    for kw in args.keywords:
        criterion: Dict[str, Any] = {
            "ad_group": ad_group,
            "status": "ENABLED",
            "keyword": {"text": kw.text, "match_type": kw.match_type},
        }
        if kw.cpc_bid_micros is not None:
            criterion["cpc_bid_micros"] = kw.cpc_bid_micros
        operations.append({"ad_group_criterion_operation": {"create": criterion}})
    return Mutation(operations)


def _normalize_add(args: AddKeywordsArgs, resource_names: List[str]) -> Dict[str, Any]:
    return {
        "success": True,
        "addedKeywords": len(resource_names),
        "keywords": [
            {"id": last_segment(rn, "~"), "resourceName": rn, "text": kw.text, "matchType": kw.match_type}
            for rn, kw in zip(resource_names, args.keywords)
        ],
    }


# ---------- add_negative_keywords ----------


def _build_add_negative(args: AddNegativeKeywordsArgs, ctx) -> Mutation:
    operations = []
    if args.ad_group_id:
        ad_group = resource_name(ctx.customer_id, "adGroups", args.ad_group_id)
        for kw in args.keywords:
            operations.append({"ad_group_criterion_operation": {"create": {
                "ad_group": ad_group,
                "status": "ENABLED",
                "negative": True,
                "keyword": {"text": kw.text, "match_type": kw.match_type},
            }}})
    else:
        campaign = resource_name(ctx.customer_id, "campaigns", args.campaign_id)
        for kw in args.keywords:
            operations.append({"campaign_criterion_operation": {"create": {
                "campaign": campaign,
                "negative": True,
                "keyword": {"text": kw.text, "match_type": kw.match_type},
            }}})
    return Mutation(operations)


def _normalize_add_negative(args: AddNegativeKeywordsArgs, resource_names: List[str]) -> Dict[str, Any]:
    return {
        "success": True,
        "level": "ad_group" if args.ad_group_id else "campaign",
        "addedKeywords": len(resource_names),
        "resourceNames": resource_names,
    }


# ---------- update_keyword ----------


def _build_update(args: UpdateKeywordArgs, ctx) -> Mutation:
    changes: Dict[str, Any] = {}
    if args.provided("status"):
        changes["status"] = args.status
    if args.provided("cpc_bid_micros"):
        changes["cpc_bid_micros"] = args.cpc_bid_micros
    rn = resource_name(ctx.customer_id, "adGroupCriteria", args.ad_group_id, args.keyword_id)
    return Mutation([{"ad_group_criterion_operation": {
        "update": {"resource_name": rn, **changes},
        "update_mask": {"paths": list(changes)},
    }}])


def _normalize_update(args: UpdateKeywordArgs, resource_names: List[str]) -> Dict[str, Any]:
    return {"success": True, "keywordId": args.keyword_id, "resourceName": resource_names[0]}


# ---------- get_keyword_performance ----------


def _build_performance(args: KeywordPerformanceArgs, ctx) -> Query:
    gaql = build_query(
        [
            "ad_group_criterion.criterion_id",
            "ad_group_criterion.keyword.text",
            "ad_group_criterion.keyword.match_type",
            "ad_group_criterion.quality_info.quality_score",
            "ad_group_criterion.quality_info.creative_quality_score",
            "ad_group_criterion.quality_info.post_click_quality_score",
            "ad_group_criterion.quality_info.search_predicted_ctr",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.ctr",
            "metrics.average_cpc",
            "metrics.conversions_from_interactions_rate",
            "metrics.cost_per_conversion",
            "metrics.search_impression_share",
            "metrics.search_rank_lost_impression_share",
            "metrics.search_budget_lost_impression_share",
        ],
        "ad_group_criterion",
        [
            KEYWORD_ONLY,
            id_equals("ad_group_criterion.criterion_id", args.keyword_id),
            id_equals("ad_group.id", args.ad_group_id),
            date_condition(args.date_range),
        ],
    )
    return Query(gaql)


def _normalize_performance(args: KeywordPerformanceArgs, rows) -> Dict[str, Any]:
    if not rows:
        raise NotFoundError(f"Keyword with ID {args.keyword_id} not found")
    r = rows[0]
    return {
        "id": ident(r, "ad_group_criterion.criterion_id"),
        "text": pick(r, "ad_group_criterion.keyword.text"),
        "matchType": pick(r, "ad_group_criterion.keyword.match_type"),
        "qualityScore": {
            "score": pick(r, "ad_group_criterion.quality_info.quality_score"),
            "creativeQuality": pick(r, "ad_group_criterion.quality_info.creative_quality_score"),
            "postClickQuality": pick(r, "ad_group_criterion.quality_info.post_click_quality_score"),
            "expectedCtr": pick(r, "ad_group_criterion.quality_info.search_predicted_ctr"),
        },
        "metrics": {
            "impressions": count(r, "metrics.impressions"),
            "clicks": count(r, "metrics.clicks"),
            "cost": money(r, "metrics.cost_micros"),
            "conversions": number(r, "metrics.conversions"),
            "ctr": number(r, "metrics.ctr"),
            "avgCpc": money(r, "metrics.average_cpc"),
            "conversionRate": number(r, "metrics.conversions_from_interactions_rate"),
            "costPerConversion": money(r, "metrics.cost_per_conversion"),
            "impressionShare": number(r, "metrics.search_impression_share"),
            "rankLostImpressionShare": number(r, "metrics.search_rank_lost_impression_share"),
            "budgetLostImpressionShare": number(r, "metrics.search_budget_lost_impression_share"),
        },
    }


TOOLS = [
    Tool(
        name="list_keywords",
        description="List keywords with their performance metrics",
        args=ListKeywordsArgs,
        build=_build_list,
        normalize=_normalize_list,
        failure="Failed to list keywords",
    ),
    Tool(
        name="add_keywords",
        description="Add keywords to an ad group",
        args=AddKeywordsArgs,
        build=_build_add,
        normalize=_normalize_add,
        failure="Failed to add keywords",
    ),
    Tool(
        name="add_negative_keywords",
        description="Add negative keywords at campaign or ad group level",
        args=AddNegativeKeywordsArgs,
        build=_build_add_negative,
        normalize=_normalize_add_negative,
        failure="Failed to add negative keywords",
    ),
    Tool(
        name="update_keyword",
        description="Update keyword status or bid",
        args=UpdateKeywordArgs,
        build=_build_update,
        normalize=_normalize_update,
        failure="Failed to update keyword",
    ),
    Tool(
        name="get_keyword_performance",
        description="Get detailed performance metrics for a specific keyword",
        args=KeywordPerformanceArgs,
        build=_build_performance,
        normalize=_normalize_performance,
        failure="Failed to get keyword performance",
    ),
]
