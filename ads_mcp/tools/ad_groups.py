from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from ..errors import NotFoundError
from ..gaql import build_query, id_equals, not_removed, resource_name
from ..normalize import count, ident, last_segment, money, number, pick
from ..pipeline import Mutation, Query, Tool
from ..schema import Micros, NewStatus, ResourceId, Status, ToolArgs

# caller field -> ad_group proto field, in mask order
BID_FIELDS = {
    "cpc_bid_micros": "cpc_bid_micros",
    "cpm_bid_micros": "cpm_bid_micros",
    "target_cpa_micros": "target_cpa_micros",
    "target_roas": "target_roas",
}


class AdGroupBids(ToolArgs):
    cpc_bid_micros: Optional[Micros] = Field(None, description="CPC bid in micros (1,000,000 = 1 unit)")
    cpm_bid_micros: Optional[Micros] = Field(None, description="CPM bid in micros")
    target_cpa_micros: Optional[Micros] = Field(None, description="Target CPA in micros")
    target_roas: Optional[float] = Field(None, gt=0, description="Target ROAS (e.g. 3.5 for 350%)")

    def bid_values(self) -> Dict[str, Any]:
        return {proto: getattr(self, attr) for attr, proto in BID_FIELDS.items() if self.provided(attr)}


class ListAdGroupsArgs(ToolArgs):
    campaign_id: Optional[ResourceId] = Field(None, description="Filter by campaign ID (optional)")
    limit: int = Field(100, ge=1, le=10000, description="Maximum number of ad groups to return")
    include_removed: bool = Field(False, description="Include removed ad groups")


class GetAdGroupArgs(ToolArgs):
    ad_group_id: ResourceId = Field(description="Ad group ID")


class CreateAdGroupArgs(AdGroupBids):
    campaign_id: ResourceId = Field(description="Campaign ID to create the ad group in")
    name: str = Field(min_length=1, description="Ad group name")
    status: NewStatus = Field("ENABLED", description="Ad group status")


class UpdateAdGroupArgs(AdGroupBids):
    ad_group_id: ResourceId = Field(description="Ad group ID to update")
    name: Optional[str] = Field(None, min_length=1, description="New ad group name")
    status: Optional[Status] = Field(None, description="New ad group status")

    @model_validator(mode="after")
    def _has_changes(self):
        self.ensure_any("name", "status", *BID_FIELDS)
        return self


def _raw_micros(row, path) -> Optional[int]:
    value = pick(row, path)
    return None if value is None else int(value)


def _bids(row) -> Dict[str, Any]:
    return {
        "cpcBidMicros": _raw_micros(row, "ad_group.cpc_bid_micros"),
        "cpmBidMicros": _raw_micros(row, "ad_group.cpm_bid_micros"),
        "targetCpaMicros": _raw_micros(row, "ad_group.target_cpa_micros"),
        "targetRoas": pick(row, "ad_group.target_roas"),
    }


# ---------- list_ad_groups ----------


def _build_list(args: ListAdGroupsArgs, ctx) -> Query:
    gaql = build_query(
        [
            "ad_group.id",
            "ad_group.name",
            "ad_group.status",
            "ad_group.campaign",
            "ad_group.cpc_bid_micros",
            "ad_group.cpm_bid_micros",
            "ad_group.target_cpa_micros",
            "ad_group.target_roas",
            "campaign.name",
            "metrics.impressions",
            "metrics.clicks",
            "metrics.cost_micros",
            "metrics.conversions",
            "metrics.conversions_value",
        ],
        "ad_group",
        [
            id_equals("campaign.id", args.campaign_id),
            None if args.include_removed else not_removed("ad_group.status"),
        ],
        order_by="ad_group.id",
        direction="DESC",
        limit=args.limit,
    )
    return Query(gaql)


def _normalize_list(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "id": ident(r, "ad_group.id"),
            "name": pick(r, "ad_group.name"),
            "status": pick(r, "ad_group.status"),
            "campaignId": last_segment(pick(r, "ad_group.campaign")),
            "campaignName": pick(r, "campaign.name"),
            **_bids(r),
            "metrics": {
                "impressions": count(r, "metrics.impressions"),
                "clicks": count(r, "metrics.clicks"),
                "cost": money(r, "metrics.cost_micros"),
                "conversions": number(r, "metrics.conversions"),
                "conversionsValue": number(r, "metrics.conversions_value"),
            },
        }
        for r in rows
    ]


# ---------- get_ad_group ----------


def _build_get(args: GetAdGroupArgs, ctx) -> Query:
    gaql = build_query(
        [
            "ad_group.id",
            "ad_group.name",
            "ad_group.status",
            "ad_group.campaign",
            "ad_group.cpc_bid_micros",
            "ad_group.cpm_bid_micros",
            "ad_group.target_cpa_micros",
            "ad_group.target_roas",
            "ad_group.effective_target_cpa_micros",
            "ad_group.effective_target_roas",
            "campaign.name",
            "campaign.id",
        ],
        "ad_group",
        [id_equals("ad_group.id", args.ad_group_id)],
    )
    return Query(gaql)


def _normalize_get(args: GetAdGroupArgs, rows) -> Dict[str, Any]:
    if not rows:
        raise NotFoundError(f"Ad group not found: {args.ad_group_id}")
    r = rows[0]
    return {
        "id": ident(r, "ad_group.id"),
        "name": pick(r, "ad_group.name"),
        "status": pick(r, "ad_group.status"),
        "campaignId": ident(r, "campaign.id"),
        "campaignName": pick(r, "campaign.name"),
        **_bids(r),
        "effectiveTargetCpaMicros": _raw_micros(r, "ad_group.effective_target_cpa_micros"),
        "effectiveTargetRoas": pick(r, "ad_group.effective_target_roas"),
    }


# ---------- create_ad_group / update_ad_group ----------


def _build_create(args: CreateAdGroupArgs, ctx) -> Mutation:
    ad_group = {
        "campaign": resource_name(ctx.customer_id, "campaigns", args.campaign_id),
        "name": args.name,
        "status": args.status,
        **args.bid_values(),
    }
    return Mutation([{"ad_group_operation": {"create": ad_group}}])


def _normalize_create(_args, resource_names: List[str]) -> Dict[str, Any]:
    rn = resource_names[0]
    return {"success": True, "adGroupId": last_segment(rn), "resourceName": rn}


def _build_update(args: UpdateAdGroupArgs, ctx) -> Mutation:
    changes: Dict[str, Any] = {}
    if args.provided("name"):
        changes["name"] = args.name
    if args.provided("status"):
        changes["status"] = args.status
    changes.update(args.bid_values())
    ad_group = {"resource_name": resource_name(ctx.customer_id, "adGroups", args.ad_group_id), **changes}
    return Mutation([{"ad_group_operation": {"update": ad_group, "update_mask": {"paths": list(changes)}}}])


def _normalize_update(_args, resource_names: List[str]) -> Dict[str, Any]:
    return {"success": True, "resourceName": resource_names[0]}


TOOLS = [
    Tool(
        name="list_ad_groups",
        description="List ad groups with their performance metrics",
        args=ListAdGroupsArgs,
        build=_build_list,
        normalize=_normalize_list,
        failure="Failed to list ad groups",
    ),
    Tool(
        name="get_ad_group",
        description="Get detailed information about a specific ad group",
        args=GetAdGroupArgs,
        build=_build_get,
        normalize=_normalize_get,
        failure="Failed to get ad group",
    ),
    Tool(
        name="create_ad_group",
        description="Create a new ad group in a campaign",
        args=CreateAdGroupArgs,
        build=_build_create,
        normalize=_normalize_create,
        failure="Failed to create ad group",
    ),
    Tool(
        name="update_ad_group",
        description="Update an existing ad group (name, status or bids)",
        args=UpdateAdGroupArgs,
        build=_build_update,
        normalize=_normalize_update,
        failure="Failed to update ad group",
    ),
]
