from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, model_validator

from ..gaql import build_query, date_condition, not_removed, resource_name
from ..normalize import ident, last_segment, number, pick
from ..pipeline import Mutation, Query, Tool
from ..schema import ReportRangeAllTime, ResourceId, ToolArgs

Category = Literal["PURCHASE", "SIGNUP", "LEAD", "PAGE_VIEW", "DOWNLOAD", "OTHER"]
ConversionType = Literal["WEBPAGE", "UPLOAD_CLICKS", "AD_CALL", "APP_DOWNLOAD"]
ConversionStatus = Literal["ENABLED", "REMOVED", "HIDDEN"]
CountingType = Literal["ONE_PER_CLICK", "MANY_PER_CLICK"]
AttributionModel = Literal[
    "EXTERNAL",
    "GOOGLE_ADS_LAST_CLICK",
    "GOOGLE_SEARCH_ATTRIBUTION_FIRST_CLICK",
    "GOOGLE_SEARCH_ATTRIBUTION_LINEAR",
    "GOOGLE_SEARCH_ATTRIBUTION_TIME_DECAY",
    "GOOGLE_SEARCH_ATTRIBUTION_POSITION_BASED",
    "GOOGLE_SEARCH_ATTRIBUTION_DATA_DRIVEN",
]

ATTRIBUTION_PATH = "attribution_model_settings.attribution_model"

# caller field -> conversion_action proto field
SIMPLE_FIELDS = {
    "name": "name",
    "status": "status",
    "counting_type": "counting_type",
    "click_through_lookback_window_days": "click_through_lookback_window_days",
    "view_through_lookback_window_days": "view_through_lookback_window_days",
}
VALUE_FIELDS = {
    "default_value": "default_value",
    "default_currency_code": "default_currency_code",
    "always_use_default_value": "always_use_default_value",
}


class ValueSettings(ToolArgs):
    default_value: Optional[float] = Field(None, ge=0, description="Default conversion value")
    default_currency_code: Optional[str] = Field(
        None, min_length=3, max_length=3, description="ISO 4217 currency code",
    )
    always_use_default_value: Optional[bool] = Field(None, description="Always use the default value")

    def proto_values(self) -> Dict[str, Any]:
        return {proto: getattr(self, attr) for attr, proto in VALUE_FIELDS.items() if self.provided(attr)}


class ListConversionActionsArgs(ToolArgs):
    include_removed: bool = Field(False, description="Include removed conversion actions")


class CreateConversionActionArgs(ToolArgs):
    name: str = Field(min_length=1, description="Conversion action name")
    category: Category = Field(description="Conversion category")
    type: ConversionType = Field("WEBPAGE", description="Conversion source type")
    status: ConversionStatus = Field("ENABLED", description="Conversion action status")
    value_settings: Optional[ValueSettings] = Field(None, description="Conversion value settings")
    counting_type: CountingType = Field("ONE_PER_CLICK", description="How conversions are counted per click")
    attribution_model: AttributionModel = Field("GOOGLE_ADS_LAST_CLICK", description="Attribution model")
    click_through_lookback_window_days: int = Field(30, ge=1, le=90, description="Click-through lookback window")
    view_through_lookback_window_days: int = Field(1, ge=1, le=30, description="View-through lookback window")


class UpdateConversionActionArgs(ToolArgs):
    conversion_action_id: ResourceId = Field(description="Conversion action ID")
    name: Optional[str] = Field(None, min_length=1, description="New name")
    status: Optional[ConversionStatus] = Field(None, description="New status")
    value_settings: Optional[ValueSettings] = Field(None, description="Value settings to change")
    counting_type: Optional[CountingType] = Field(None, description="New counting type")
    attribution_model: Optional[AttributionModel] = Field(None, description="New attribution model")
    click_through_lookback_window_days: Optional[int] = Field(None, ge=1, le=90)
    view_through_lookback_window_days: Optional[int] = Field(None, ge=1, le=30)

    @model_validator(mode="after")
    def _has_changes(self):
        if self.value_settings is not None and self.value_settings.proto_values():
            return self
        self.ensure_any(*SIMPLE_FIELDS, "attribution_model")
        return self


class ConversionStatsArgs(ToolArgs):
    conversion_action_id: Optional[ResourceId] = Field(None, description="Filter by conversion action ID")
    date_range: ReportRangeAllTime = Field("LAST_30_DAYS", description="Date range for stats")
    segment_by_conversion_action: bool = Field(True, description="Return one entry per conversion action")


# ---------- list_conversion_actions ----------


def _build_list(args: ListConversionActionsArgs, ctx) -> Query:
    gaql = build_query(
        [
            "conversion_action.id",
            "conversion_action.name",
            "conversion_action.category",
            "conversion_action.type",
            "conversion_action.status",
            "conversion_action.counting_type",
            "conversion_action.attribution_model_settings.attribution_model",
            "conversion_action.click_through_lookback_window_days",
            "conversion_action.view_through_lookback_window_days",
            "conversion_action.value_settings.default_value",
            "conversion_action.value_settings.default_currency_code",
            "conversion_action.value_settings.always_use_default_value",
            "metrics.all_conversions",
            "metrics.all_conversions_value",
        ],
        "conversion_action",
        [None if args.include_removed else not_removed("conversion_action.status")],
    )
    return Query(gaql)


def _normalize_list(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "id": ident(r, "conversion_action.id"),
            "name": pick(r, "conversion_action.name"),
            "category": pick(r, "conversion_action.category"),
            "type": pick(r, "conversion_action.type"),
            "status": pick(r, "conversion_action.status"),
            "countingType": pick(r, "conversion_action.counting_type"),
            "attributionModel": pick(r, f"conversion_action.{ATTRIBUTION_PATH}"),
            "clickThroughLookbackWindowDays": pick(r, "conversion_action.click_through_lookback_window_days"),
            "viewThroughLookbackWindowDays": pick(r, "conversion_action.view_through_lookback_window_days"),
            "valueSettings": {
                "defaultValue": pick(r, "conversion_action.value_settings.default_value"),
                "defaultCurrencyCode": pick(r, "conversion_action.value_settings.default_currency_code"),
                "alwaysUseDefaultValue": pick(r, "conversion_action.value_settings.always_use_default_value"),
            },
            "metrics": {
                "allConversions": number(r, "metrics.all_conversions"),
                "allConversionsValue": number(r, "metrics.all_conversions_value"),
            },
        }
        for r in rows
    ]


# ---------- create_conversion_action ----------


def _build_create(args: CreateConversionActionArgs, ctx) -> Mutation:
    action: Dict[str, Any] = {
        "name": args.name,
        "category": args.category,
        "type_": args.type,
        "status": args.status,
        "counting_type": args.counting_type,
        "attribution_model_settings": {"attribution_model": args.attribution_model},
        "click_through_lookback_window_days": args.click_through_lookback_window_days,
        "view_through_lookback_window_days": args.view_through_lookback_window_days,
    }
    if args.value_settings is not None:
        action["value_settings"] = {"always_use_default_value": False, **args.value_settings.proto_values()}
    return Mutation([{"conversion_action_operation": {"create": action}}])


def _normalize_create(_args, resource_names: List[str]) -> Dict[str, Any]:
    rn = resource_names[0]
    return {"success": True, "conversionActionId": last_segment(rn), "resourceName": rn}


# ---------- update_conversion_action ----------


def _build_update(args: UpdateConversionActionArgs, ctx) -> Mutation:
    action: Dict[str, Any] = {
        "resource_name": resource_name(ctx.customer_id, "conversionActions", args.conversion_action_id),
    }
    paths: List[str] = []
    for attr, proto in SIMPLE_FIELDS.items():
        if args.provided(attr):
            action[proto] = getattr(args, attr)
            paths.append(proto)
    if args.provided("attribution_model"):
        action["attribution_model_settings"] = {"attribution_model": args.attribution_model}
        paths.append(ATTRIBUTION_PATH)
    if args.value_settings is not None:
        values = args.value_settings.proto_values()
        if values:
            action["value_settings"] = values
            paths.extend(f"value_settings.{name}" for name in values)
    return Mutation([{"conversion_action_operation": {"update": action, "update_mask": {"paths": paths}}}])


def _normalize_update(_args, resource_names: List[str]) -> Dict[str, Any]:
    return {"success": True, "resourceName": resource_names[0]}


# ---------- get_conversion_stats ----------


def _build_stats(args: ConversionStatsArgs, ctx) -> Query:
    action_filter = None
    if args.conversion_action_id:
        rn = resource_name(ctx.customer_id, "conversionActions", args.conversion_action_id)
        action_filter = f"segments.conversion_action = '{rn}'"
    gaql = build_query(
        [
            "segments.conversion_action",
            "segments.conversion_action_name",
            "metrics.conversions",
            "metrics.conversions_value",
            "metrics.all_conversions",
            "metrics.all_conversions_value",
            "metrics.value_per_conversion",
            "metrics.value_per_all_conversions",
        ],
        "customer",
        [action_filter, date_condition(args.date_range)],
    )
    return Query(gaql)


def _stats_metrics(r) -> Dict[str, float]:
    return {
        "conversions": number(r, "metrics.conversions"),
        "conversionsValue": number(r, "metrics.conversions_value"),
        "allConversions": number(r, "metrics.all_conversions"),
        "allConversionsValue": number(r, "metrics.all_conversions_value"),
        "valuePerConversion": number(r, "metrics.value_per_conversion"),
        "valuePerAllConversions": number(r, "metrics.value_per_all_conversions"),
    }


def _normalize_stats(args: ConversionStatsArgs, rows) -> Dict[str, Any]:
    if not args.segment_by_conversion_action:
        totals = {"conversions": 0.0, "conversionsValue": 0.0, "allConversions": 0.0, "allConversionsValue": 0.0}
        for r in rows:
            metrics = _stats_metrics(r)
            for key in totals:
                totals[key] += metrics[key]
        return {"dateRange": args.date_range, "totals": totals}

    return {
        "dateRange": args.date_range,
        "conversionActions": [
            {
                "id": last_segment(pick(r, "segments.conversion_action")),
                "name": pick(r, "segments.conversion_action_name"),
                "metrics": _stats_metrics(r),
            }
            for r in rows
        ],
    }


TOOLS = [
    Tool(
        name="list_conversion_actions",
        description="List all conversion actions configured in the account",
        args=ListConversionActionsArgs,
        build=_build_list,
        normalize=_normalize_list,
        failure="Failed to list conversion actions",
    ),
    Tool(
        name="create_conversion_action",
        description="Create a new conversion action",
        args=CreateConversionActionArgs,
        build=_build_create,
        normalize=_normalize_create,
        failure="Failed to create conversion action",
    ),
    Tool(
        name="update_conversion_action",
        description="Update an existing conversion action",
        args=UpdateConversionActionArgs,
        build=_build_update,
        normalize=_normalize_update,
        failure="Failed to update conversion action",
    ),
    Tool(
        name="get_conversion_stats",
        description="Get conversion statistics, per conversion action or as account totals",
        args=ConversionStatsArgs,
        build=_build_stats,
        normalize=_normalize_stats,
        failure="Failed to get conversion stats",
    ),
]
