from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from ..errors import NotFoundError
from ..gaql import build_query
from ..normalize import ident, last_segment, pick
from ..pipeline import ListAccessibleCustomers, Query, Tool
from ..schema import ResourceId, ToolArgs


class NoArgs(ToolArgs):
    pass


class AccountHierarchyArgs(ToolArgs):
    customer_id: Optional[ResourceId] = Field(None, description="Customer ID to get hierarchy for (optional)")
    login_customer_id: Optional[ResourceId] = Field(
        None, description="Login customer ID for manager accounts (optional)",
    )
    depth: int = Field(2, ge=1, le=10, description="Deepest hierarchy level to include")


class AccountInfoArgs(ToolArgs):
    customer_id: ResourceId = Field(description="Customer ID to get info for")


class ManagerAccountsArgs(ToolArgs):
    customer_id: Optional[ResourceId] = Field(
        None, description="Customer ID to check manager relationships (optional)",
    )


# ---------- list_accessible_customers ----------


def _normalize_accessible(_args, resource_names: List[str]) -> Dict[str, Any]:
    customers = [{"resourceName": rn, "customerId": last_segment(rn)} for rn in resource_names]
    return {"count": len(customers), "customers": customers}


# ---------- get_account_hierarchy ----------


def _build_hierarchy(args: AccountHierarchyArgs, ctx) -> Query:
    gaql = build_query(
        [
            "customer_client.client_customer",
            "customer_client.level",
            "customer_client.manager",
            "customer_client.descriptive_name",
            "customer_client.currency_code",
            "customer_client.time_zone",
            "customer_client.id",
        ],
        "customer_client",
        [f"customer_client.level <= {args.depth}"],
    )
    return Query(gaql, customer_id=args.customer_id, login_customer_id=args.login_customer_id)


def _normalize_hierarchy(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "id": ident(r, "customer_client.id"),
            "descriptiveName": pick(r, "customer_client.descriptive_name"),
            "currencyCode": pick(r, "customer_client.currency_code"),
            "timeZone": pick(r, "customer_client.time_zone"),
            "level": int(pick(r, "customer_client.level", 0)),
            "isManager": bool(pick(r, "customer_client.manager", False)),
            "clientCustomer": pick(r, "customer_client.client_customer"),
        }
        for r in rows
    ]


# ---------- get_account_info ----------


def _build_account_info(args: AccountInfoArgs, ctx) -> Query:
    gaql = build_query(
        [
            "customer.id",
            "customer.descriptive_name",
            "customer.currency_code",
            "customer.time_zone",
            "customer.auto_tagging_enabled",
            "customer.tracking_url_template",
            "customer.optimization_score",
            "customer.pay_per_conversion_eligibility_failure_reasons",
        ],
        "customer",
        [f"customer.id = {args.customer_id}"],
    )
    return Query(gaql, customer_id=args.customer_id)


def _normalize_account_info(args: AccountInfoArgs, rows) -> Dict[str, Any]:
    if not rows:
        raise NotFoundError(f"Customer not found: {args.customer_id}")
    r = rows[0]
    return {
        "id": ident(r, "customer.id"),
        "descriptiveName": pick(r, "customer.descriptive_name"),
        "currencyCode": pick(r, "customer.currency_code"),
        "timeZone": pick(r, "customer.time_zone"),
        "autoTaggingEnabled": bool(pick(r, "customer.auto_tagging_enabled", False)),
        "trackingUrlTemplate": pick(r, "customer.tracking_url_template"),
        "optimizationScore": pick(r, "customer.optimization_score"),
        "payPerConversionEligibilityFailureReasons": list(
            pick(r, "customer.pay_per_conversion_eligibility_failure_reasons", [])
        ),
    }


# ---------- list_manager_accounts ----------


def _build_manager_links(args: ManagerAccountsArgs, ctx) -> Query:
    gaql = build_query(
        [
            "customer_manager_link.resource_name",
            "customer_manager_link.manager_customer",
            "customer_manager_link.manager_link_id",
            "customer_manager_link.status",
        ],
        "customer_manager_link",
        ["customer_manager_link.status = 'ACTIVE'"],
    )
    return Query(gaql, customer_id=args.customer_id)


def _client_customer(link_rn: Optional[str]) -> Optional[str]:
    # customers/{client_id}/customerManagerLinks/{manager_id}~{link_id}
    if not link_rn:
        return None
    return "/".join(link_rn.split("/")[:2])


def _normalize_manager_links(_args, rows) -> List[Dict[str, Any]]:
    return [
        {
            "managerCustomer": pick(r, "customer_manager_link.manager_customer"),
            "clientCustomer": _client_customer(pick(r, "customer_manager_link.resource_name")),
            "managerLinkId": ident(r, "customer_manager_link.manager_link_id"),
            "status": pick(r, "customer_manager_link.status"),
        }
        for r in rows
    ]


TOOLS = [
    Tool(
        name="list_accessible_customers",
        description="List all Google Ads accounts accessible by the authenticated user",
        args=NoArgs,
        build=lambda args, ctx: ListAccessibleCustomers(),
        normalize=_normalize_accessible,
        failure="Failed to list accessible customers",
    ),
    Tool(
        name="get_account_hierarchy",
        description="Get the account hierarchy showing manager and client relationships",
        args=AccountHierarchyArgs,
        build=_build_hierarchy,
        normalize=_normalize_hierarchy,
        failure="Failed to get account hierarchy",
    ),
    Tool(
        name="get_account_info",
        description="Get detailed information about a specific Google Ads account",
        args=AccountInfoArgs,
        build=_build_account_info,
        normalize=_normalize_account_info,
        failure="Failed to get account info",
    ),
    Tool(
        name="list_manager_accounts",
        description="List manager account relationships",
        args=ManagerAccountsArgs,
        build=_build_manager_links,
        normalize=_normalize_manager_links,
        failure="Failed to list manager accounts",
    ),
]
