from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, model_validator

from ..errors import NotFoundError
from ..gaql import build_query, date_condition, id_equals, not_removed, resource_name, to_micros
from ..normalize import count, ident, last_segment, money, money_or_none, number, pick
from ..pipeline import Lookup, Mutation, Query, Tool
from ..schema import DateWindowArgs, ExtendedRange, NewStatus, ResourceId, Status, ToolArgs

ChannelType = Literal["SEARCH", "DISPLAY", "SHOPPING", "VIDEO", "MULTI_CHANNEL"]


class ListCampaignsArgs(DateWindowArgs):
    limit: int = Field(50, ge=1, le=10000, description="Maximum number of campaigns to return")
    include_removed: bool = Field(False, description="Include removed campaigns")
    date_range: ExtendedRange = Field("ALL_TIME", description="Date range for metrics (default: ALL_TIME)")


class GetCampaignArgs(ToolArgs):
    campaign_id: ResourceId = Field(description="Campaign ID")


class CreateCampaignArgs(ToolArgs):
    name: str = Field(min_length=1, description="Campaign name")
    budget: float = Field(gt=0, description="Daily budget in account currency")
    advertising_channel_type: ChannelType = Field(description="Campaign type")
    status: NewStatus = Field("PAUSED", description="Campaign status")


class UpdateCampaignArgs(ToolArgs):
    campaign_id: ResourceId = Field(description="Campaign ID")
    name: Optional[str] = Field(None, min_length=1, description="New campaign name")
    status: Optional[Status] = Field(None, description="New campaign status")
    budget: Optional[float] = Field(None, gt=0, description="New daily budget")

    @model_validator(mode="after")
    def _has_changes(self):
        self.ensure_any("name", "status", "budget")
        return self


def _campaign_metrics(row) -> Dict[str, Any]:
    return {
        "impressions": count(row, "metrics.impressions"),
        "clicks": count(row, "metrics.clicks"),
        "cost": money(row, "metrics.cost_micros"),
        "conversions": number(row, "metrics.conversions"),
        "ctr": number(row, "metrics.ctr"),
        "avgCpc": money(row, "metrics.average_cpc"),
        "conversionRate": number(row, "metrics.conversions_from_interactions_rate"),
    }


# ---------- list_campaigns ----------


def _build_list(args: ListCampaignsArgs, ctx) -> Query:
    where = [
        None if args.include_removed else not_removed("campaign.status"),
        date_condition(args.date_range, args.custom_date_range),
    ]
    gaql = build_query(
        [
            "campaign.id",
            "campaign.name",
            "campaign.status",
            "campaign.advertising_channel_type",
            "campaign.start_date_time",
            "campaign.end_date_time",
            "campaign_budget.amount_micros",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.ctr",
            "metrics.average_cpc",
            "metrics.conversions_from_interactions_rate",
            "metrics.cost_per_conversion",
        ],
        "campaign",
        where,
        order_by="campaign.id",
        direction="ASC",
        limit=args.limit,
    )
    return Query(gaql)


def _normalize_list(args: ListCampaignsArgs, rows) -> List[Dict[str, Any]]:
    out = []
    for r in rows:
        metrics = _campaign_metrics(r)
        metrics["costPerConversion"] = money(r, "metrics.cost_per_conversion")
        out.append({
            "id": ident(r, "campaign.id"),
            "name": pick(r, "campaign.name"),
            "status": pick(r, "campaign.status"),
            "type": pick(r, "campaign.advertising_channel_type"),
            "startDate": pick(r, "campaign.start_date_time"),
            "endDate": pick(r, "campaign.end_date_time"),
            "budget": money_or_none(r, "campaign_budget.amount_micros"),
            "dateRange": args.date_range,
            "metrics": metrics,
        })
    return out


# ---------- get_campaign ----------


def _build_get(args: GetCampaignArgs, ctx) -> Query:
    gaql = build_query(
        [
            "campaign.id",
            "campaign.name",
            "campaign.status",
            "campaign.advertising_channel_type",
            "campaign.start_date_time",
            "campaign.end_date_time",
            "campaign.serving_status",
            "campaign.optimization_score",
            "campaign_budget.amount_micros",
            "campaign_budget.delivery_method",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.ctr",
            "metrics.average_cpc",
            "metrics.conversions_from_interactions_rate",
        ],
        "campaign",
        [id_equals("campaign.id", args.campaign_id)],
    )
    return Query(gaql)


def _normalize_get(args: GetCampaignArgs, rows) -> Dict[str, Any]:
    if not rows:
        raise NotFoundError(f"Campaign with ID {args.campaign_id} not found")
    r = rows[0]
    return {
        "id": ident(r, "campaign.id"),
        "name": pick(r, "campaign.name"),
        "status": pick(r, "campaign.status"),
        "servingStatus": pick(r, "campaign.serving_status"),
        "type": pick(r, "campaign.advertising_channel_type"),
        "startDate": pick(r, "campaign.start_date_time"),
        "endDate": pick(r, "campaign.end_date_time"),
        "optimizationScore": pick(r, "campaign.optimization_score"),
        "budget": {
            "amount": money_or_none(r, "campaign_budget.amount_micros"),
            "deliveryMethod": pick(r, "campaign_budget.delivery_method"),
        },
        "metrics": _campaign_metrics(r),
    }


# ---------- create_campaign ----------


def _build_create(args: CreateCampaignArgs, ctx) -> Mutation:
    budget_rn = resource_name(ctx.customer_id, "campaignBudgets", "-1")
    return Mutation([
        {"campaign_budget_operation": {"create": {
            "resource_name": budget_rn,
            "name": f"Budget for {args.name}",
            "amount_micros": to_micros(args.budget),
            "delivery_method": "STANDARD",
            "explicitly_shared": False,
        }}},
        {"campaign_operation": {"create": {
            "name": args.name,
            "status": args.status,
            "advertising_channel_type": args.advertising_channel_type,
            "campaign_budget": budget_rn,
            "manual_cpc": {},
            "contains_eu_political_advertising": "DOES_NOT_CONTAIN_EU_POLITICAL_ADVERTISING",
        }}},
    ])


def _normalize_create(args: CreateCampaignArgs, resource_names: List[str]) -> Dict[str, Any]:
    budget_rn, campaign_rn = resource_names
    return {
        "id": last_segment(campaign_rn),
        "resourceName": campaign_rn,
        "budgetResourceName": budget_rn,
        "name": args.name,
        "status": args.status,
        "budget": args.budget,
    }


# ---------- update_campaign ----------


def _campaign_update(args: UpdateCampaignArgs, customer_id: str) -> Optional[Dict[str, Any]]:
    changes: Dict[str, Any] = {}
    if args.provided("name"):
        changes["name"] = args.name
    if args.provided("status"):
        changes["status"] = args.status
    if not changes:
        return None
    resource = {"resource_name": resource_name(customer_id, "campaigns", args.campaign_id), **changes}
    return {"campaign_operation": {"update": resource, "update_mask": {"paths": list(changes)}}}


def _build_update(args: UpdateCampaignArgs, ctx) -> Any:
    campaign_op = _campaign_update(args, ctx.customer_id)
    if not args.provided("budget"):
        return Mutation([campaign_op])

    def with_budget(rows) -> Mutation:
        budget_rn = pick(rows[0], "campaign_budget.resource_name") if rows else None
        if not budget_rn:
            raise NotFoundError(f"Campaign with ID {args.campaign_id} has no budget")
        budget_op = {"campaign_budget_operation": {
            "update": {"resource_name": budget_rn, "amount_micros": to_micros(args.budget)},
            "update_mask": {"paths": ["amount_micros"]},
        }}
        return Mutation([op for op in (campaign_op, budget_op) if op])

    lookup = build_query(
        ["campaign.id", "campaign_budget.resource_name"],
        "campaign",
        [id_equals("campaign.id", args.campaign_id)],
    )
    return Lookup(Query(lookup), with_budget)


def _normalize_update(args: UpdateCampaignArgs, resource_names: List[str]) -> Dict[str, Any]:
    return {
        "success": True,
        "campaignId": args.campaign_id,
        "updatedFields": [f for f in ("name", "status", "budget") if args.provided(f)],
        "resourceNames": resource_names,
    }


TOOLS = [
    Tool(
        name="list_campaigns",
        description="List all Google Ads campaigns with their metrics for a specific date range",
        args=ListCampaignsArgs,
        build=_build_list,
        normalize=_normalize_list,
        failure="Failed to list campaigns",
    ),
    Tool(
        name="get_campaign",
        description="Get detailed information about a specific campaign",
        args=GetCampaignArgs,
        build=_build_get,
        normalize=_normalize_get,
        failure="Failed to get campaign",
    ),
    Tool(
        name="create_campaign",
        description="Create a new Google Ads campaign",
        args=CreateCampaignArgs,
        build=_build_create,
        normalize=_normalize_create,
        failure="Failed to create campaign",
    ),
    Tool(
        name="update_campaign",
        description="Update an existing campaign",
        args=UpdateCampaignArgs,
        build=_build_update,
        normalize=_normalize_update,
        failure="Failed to update campaign",
    ),
]
