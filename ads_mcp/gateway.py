"""Boundary to the Google Ads API.

Tools never talk to ``google-ads`` directly; they hand GAQL strings and
mutate-operation dicts to an :class:`AdsGateway` and get plain Python data
back. Rows come back as nested dicts keyed by proto field names, e.g.
``{"campaign": {"id": "123", "name": "Brand"}, "metrics": {"cost_micros": "2500000"}}``.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException
from starlette.concurrency import run_in_threadpool

from .config import Settings, clean_customer_id
from .errors import AdsApiError

log = logging.getLogger(__name__)

Row = Dict[str, Any]


class AdsGateway(ABC):
    """Query/mutate capability scoped to one advertiser account."""

    customer_id: str

    @abstractmethod
    async def query(
        self,
        gaql: str,
        customer_id: Optional[str] = None,
        login_customer_id: Optional[str] = None,
    ) -> List[Row]:
        """Run a GAQL query and return its rows in server order."""

    @abstractmethod
    async def mutate(self, operations: List[Dict[str, Any]]) -> List[str]:
        """Send one mutate request; return one resource name per operation."""

    @abstractmethod
    async def list_accessible_customers(self) -> List[str]:
        """Resource names of every customer the credentials can reach."""


def _ads_call(fn):
    try:
        return fn()
    except GoogleAdsException as e:
        status = e.error.code().name if hasattr(e, "error") else "UNKNOWN"
        failure = getattr(e, "failure", None)
        details: Dict[str, Any] = {
            "status": status,
            "request_id": getattr(e, "request_id", None),
            "errors": [{"message": err.message, "code": type(err.error_code).__name__}
                       for err in (failure.errors or [])] if failure else [],
        }
        if status == "PERMISSION_DENIED":
            details["hint"] = ("Set GOOGLE_ADS_LOGIN_CUSTOMER_ID to the manager (MCC) account "
                               "that owns the target customer.")
        raise AdsApiError(json.dumps(details)) from e


def _plain_keys(value):
    # proto-plus suffixes fields that shadow Python builtins: "type" comes back as "type_"
    if isinstance(value, dict):
        return {(k[:-1] if k.endswith("_") else k): _plain_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain_keys(v) for v in value]
    return value


def _row_to_dict(row) -> Row:
    return _plain_keys(
        type(row).to_dict(row, use_integers_for_enums=False, preserving_proto_field_name=True)
    )


def _result_resource_name(op_response) -> str:
    which = type(op_response).pb(op_response).WhichOneof("response")
    if not which:
        return ""
    return getattr(op_response, which).resource_name


class GoogleAdsGateway(AdsGateway):
    def __init__(self, settings: Settings, client: Optional[GoogleAdsClient] = None):
        self.settings = settings
        self.customer_id = settings.customer_id
        self._client = client or self._new_ads_client()

    def _new_ads_client(self, login_cid: Optional[str] = None) -> GoogleAdsClient:
        cfg = self.settings.ads_client_config(login_cid)
        log.info("GoogleAds login_customer_id in use: %r (arg=%r env=%r)",
                 cfg.get("login_customer_id", ""), login_cid or "", self.settings.login_customer_id)
        return GoogleAdsClient.load_from_dict(cfg)

    def _client_for(self, login_cid: Optional[str]) -> GoogleAdsClient:
        if clean_customer_id(login_cid):
            return self._new_ads_client(login_cid)
        return self._client

    def _search(self, gaql: str, customer_id: str, login_cid: Optional[str]) -> List[Row]:
        svc = self._client_for(login_cid).get_service("GoogleAdsService")
        req = {"customer_id": customer_id, "query": gaql}
        # the pager fetches further pages lazily; keep that inside _ads_call too
        return _ads_call(lambda: [_row_to_dict(r) for r in svc.search(request=req)])

    def _mutate(self, operations: List[Dict[str, Any]]) -> List[str]:
        svc = self._client.get_service("GoogleAdsService")
        req = {"customer_id": self.customer_id, "mutate_operations": operations}
        resp = _ads_call(lambda: svc.mutate(request=req))
        return [_result_resource_name(r) for r in resp.mutate_operation_responses]

    def _list_accessible(self) -> List[str]:
        svc = self._client.get_service("CustomerService")
        resp = _ads_call(lambda: svc.list_accessible_customers())
        return list(resp.resource_names)

    async def query(self, gaql, customer_id=None, login_customer_id=None):
        cid = clean_customer_id(customer_id) or self.customer_id
        log.debug("GAQL customer=%s query=%s", cid, gaql)
        return await run_in_threadpool(self._search, gaql, cid, login_customer_id)

    async def mutate(self, operations):
        log.info("mutate customer=%s operations=%d", self.customer_id, len(operations))
        return await run_in_threadpool(self._mutate, operations)

    async def list_accessible_customers(self):
        return await run_in_threadpool(self._list_accessible)
