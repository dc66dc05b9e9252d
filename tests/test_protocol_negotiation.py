import asyncio
from types import SimpleNamespace

from ads_mcp.tools import build_registry
from app import SUPPORTED_MCP_VERSIONS, _handle_single_rpc, _latest_supported_protocol
from conftest import FakeGateway, make_settings


class DummyRequest:
    def __init__(self, headers=None, shared_key=""):
        self.headers = headers or {}
        self.state = SimpleNamespace()
        self.app = SimpleNamespace(state=SimpleNamespace(
            registry=build_registry(),
            gateway=FakeGateway(),
            settings=make_settings(shared_key=shared_key),
        ))

def _initialize(payload, request_headers=None):
    request = DummyRequest(request_headers)
    headers = {}
    response = asyncio.run(_handle_single_rpc(payload, request, headers))
    return response, headers, request

def test_initialize_downgrades_to_supported_version():
    response, headers, request = _initialize({
        "jsonrpc": "2.0",
        "id": "init",
        "method": "initialize",
        "params": {"protocolVersion": "2025-06-18"},
    })
    negotiated = _latest_supported_protocol()
    assert response["result"]["protocolVersion"] == negotiated
    assert headers["MCP-Protocol-Version"] == negotiated
    assert request.state.mcp_protocol_version == negotiated

def test_initialize_reports_server_info_and_tools():
    response, _, _ = _initialize({
        "jsonrpc": "2.0",
        "id": 1,
        "method": "initialize",
        "params": {"protocolVersion": "2024-11-05"},
    })
    result = response["result"]
    assert result["serverInfo"]["name"] == "mcp-google-ads"
    assert result["capabilities"] == {"tools": {"listChanged": False}}
    assert len(result["tools"]) == 35

def test_initialize_uses_header_when_params_missing():
    response, headers, _ = _initialize(
        {"jsonrpc": "2.0", "id": 2, "method": "initialize", "params": {}},
        {"MCP-Protocol-Version": "2024-11-05"},
    )
    assert response["result"]["protocolVersion"] == "2024-11-05"
    assert headers["MCP-Protocol-Version"] == "2024-11-05"

def test_initialize_rejects_older_than_supported():
    response, headers, request = _initialize({
        "jsonrpc": "2.0",
        "id": "init-old",
        "method": "initialize",
        "params": {"protocolVersion": "2023-01-01"},
    })
    assert response["error"]["code"] == -32602
    assert response["error"]["message"] == "Unsupported protocolVersion"
    assert response["error"]["data"]["supportedVersions"] == SUPPORTED_MCP_VERSIONS
    assert headers["MCP-Protocol-Version"] == _latest_supported_protocol()
    assert request.state.mcp_protocol_version == _latest_supported_protocol()

def test_initialize_rejects_bad_format():
    response, headers, _ = _initialize({
        "jsonrpc": "2.0",
        "id": "init-bad",
        "method": "initialize",
        "params": {"protocolVersion": "not-a-date"},
    })
    assert response["error"]["code"] == -32602
    assert response["error"]["message"] == "Invalid protocolVersion format"
    assert "supportedVersions" in response["error"]["data"]
