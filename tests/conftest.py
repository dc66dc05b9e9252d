# Ensure project root is importable
import asyncio
import pathlib
import sys
from types import SimpleNamespace

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ads_mcp.config import Settings  # noqa: E402
from ads_mcp.gateway import AdsGateway  # noqa: E402
from ads_mcp.pipeline import call_tool  # noqa: E402
from ads_mcp.tools import build_registry  # noqa: E402

CUSTOMER_ID = "1234567890"


class FakeGateway(AdsGateway):
    """Records every call. Queries are answered from ``results`` in order."""

    def __init__(self, results=None, resource_names=None, customers=None, error=None, customer_id=CUSTOMER_ID):
        self.customer_id = customer_id
        self.results = list(results or [])
        self.resource_names = resource_names
        self.customers = list(customers or [])
        self.error = error
        self.queries = []
        self.mutations = []
        self.accessible_calls = 0

    @property
    def calls(self):
        return len(self.queries) + len(self.mutations) + self.accessible_calls

    async def query(self, gaql, customer_id=None, login_customer_id=None):
        self.queries.append(SimpleNamespace(gaql=gaql, customer_id=customer_id, login_customer_id=login_customer_id))
        if self.error:
            raise self.error
        return self.results.pop(0) if self.results else []

    async def mutate(self, operations):
        self.mutations.append(operations)
        if self.error:
            raise self.error
        if self.resource_names is not None:
            return list(self.resource_names)
        return [f"customers/{self.customer_id}/resources/{i}" for i, _ in enumerate(operations)]

    async def list_accessible_customers(self):
        self.accessible_calls += 1
        if self.error:
            raise self.error
        return list(self.customers)


def make_settings(**overrides):
    values = dict(
        developer_token="dev-token",
        client_id="client-id",
        client_secret="client-secret",
        refresh_token="refresh-token",
        customer_id=CUSTOMER_ID,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(scope="session")
def registry():
    return build_registry()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def run_tool(registry):
    """Call a tool synchronously: ``run_tool(gateway, name, arguments)``."""
    def _run(gateway, name, arguments=None):
        return asyncio.run(call_tool(registry, gateway, name, arguments))
    return _run
