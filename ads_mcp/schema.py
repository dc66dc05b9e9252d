"""Argument models shared by every tool, and their JSON-schema rendering."""

from __future__ import annotations

import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Type

import jsonref  # type: ignore
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .errors import ArgumentError

# ---------- Field types ----------


def _clean_id(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.replace("-", "").strip()
    return value


ResourceId = Annotated[str, BeforeValidator(_clean_id), Field(pattern=r"^\d+$", max_length=30)]
Micros = Annotated[int, Field(ge=0)]

Status = Literal["ENABLED", "PAUSED", "REMOVED"]
NewStatus = Literal["ENABLED", "PAUSED"]
MatchType = Literal["EXACT", "PHRASE", "BROAD"]
Direction = Literal["ASC", "DESC"]

# Date windows accepted by the various reports.
ReportRange = Literal["TODAY", "YESTERDAY", "LAST_7_DAYS", "LAST_30_DAYS", "THIS_MONTH", "LAST_MONTH"]
ReportRangeAllTime = Literal[
    "TODAY", "YESTERDAY", "LAST_7_DAYS", "LAST_30_DAYS", "THIS_MONTH", "LAST_MONTH", "ALL_TIME",
]
ReportRange14 = Literal[
    "TODAY", "YESTERDAY", "LAST_7_DAYS", "LAST_14_DAYS", "LAST_30_DAYS", "THIS_MONTH", "LAST_MONTH",
]
SearchTermsRange = Literal[
    "TODAY", "YESTERDAY", "LAST_7_DAYS", "LAST_30_DAYS", "THIS_MONTH", "LAST_MONTH", "CUSTOM",
]
ExtendedRange = Literal[
    "TODAY", "YESTERDAY", "LAST_7_DAYS", "LAST_14_DAYS", "LAST_30_DAYS", "THIS_MONTH", "LAST_MONTH",
    "THIS_QUARTER", "LAST_QUARTER", "THIS_YEAR", "LAST_YEAR", "ALL_TIME", "CUSTOM",
]
OpportunityRange = Literal["LAST_7_DAYS", "LAST_30_DAYS", "LAST_90_DAYS"]


# ---------- Base models ----------


class ToolArgs(BaseModel):
    """camelCase on the wire, snake_case in Python; unknown keys are dropped."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def provided(self, name: str) -> bool:
        """True when the caller sent ``name`` with a non-null value."""
        return name in self.model_fields_set and getattr(self, name) is not None

    def ensure_any(self, *names: str) -> None:
        if not any(self.provided(n) for n in names):
            raise ValueError(f"at least one of {', '.join(to_camel(n) for n in names)} must be provided")


class CustomDateRange(ToolArgs):
    start_date: datetime.date = Field(description="Start date in YYYY-MM-DD format")
    end_date: datetime.date = Field(description="End date in YYYY-MM-DD format")

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class DateWindowArgs(ToolArgs):
    """Mixin for tools whose ``dateRange`` may be the CUSTOM sentinel."""

    custom_date_range: Optional[CustomDateRange] = Field(
        None, description="Custom date range (required when dateRange is CUSTOM)",
    )

    @model_validator(mode="after")
    def _custom_needs_dates(self):
        if getattr(self, "date_range", None) == "CUSTOM" and self.custom_date_range is None:
            raise ValueError("customDateRange is required when dateRange is CUSTOM")
        return self


# ---------- Validation ----------


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid arguments: " + "; ".join(parts)


def validate_args(model: Type[ToolArgs], raw: Any) -> ToolArgs:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ArgumentError("Invalid arguments: arguments: expected an object")
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ArgumentError(
            format_validation_error(exc),
            {"fields": [".".join(str(p) for p in e["loc"]) for e in exc.errors()]},
        ) from exc


# ---------- JSON schema ----------

_METADATA_KEYS = ("$defs", "$schema", "$id", "title", "definitions")


def sanitize_schema(schema: Any) -> Any:
    """Strip pydantic metadata and collapse ``Optional`` unions.

    Expects ``$ref``s to be resolved already.
    """
    if not isinstance(schema, dict):
        return schema

    new_schema = {k: v for k, v in schema.items() if k not in _METADATA_KEYS}

    if "anyOf" in new_schema:
        non_null = [x for x in new_schema["anyOf"] if x.get("type") != "null"]
        if len(non_null) == 1 and isinstance(non_null[0], dict):
            merged = dict(non_null[0])
            for key in ("description", "default"):
                if key in new_schema:
                    merged[key] = new_schema[key]
            return sanitize_schema(merged)

    if new_schema.get("default", "") is None:
        del new_schema["default"]

    for key, value in list(new_schema.items()):
        if key == "properties" and isinstance(value, dict):
            # keys here are field names, not schema keywords
            new_schema[key] = {name: sanitize_schema(sub) for name, sub in value.items()}
        elif isinstance(value, dict):
            new_schema[key] = sanitize_schema(value)
        elif isinstance(value, list):
            new_schema[key] = [sanitize_schema(item) if isinstance(item, dict) else item for item in value]
    return new_schema


def input_schema(model: Type[ToolArgs]) -> Dict[str, Any]:
    raw = model.model_json_schema(by_alias=True)
    resolved = jsonref.replace_refs(raw, proxies=False, merge_props=True)
    schema = sanitize_schema(resolved)
    schema.setdefault("properties", {})
    return schema
