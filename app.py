from __future__ import annotations

import datetime
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import Message

from ads_mcp import __version__
from ads_mcp.config import Settings
from ads_mcp.errors import (
    INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND, UNAUTHORIZED, ArgumentError, ConfigError, ToolError,
    UnknownToolError,
)
from ads_mcp.gateway import AdsGateway, GoogleAdsGateway
from ads_mcp.pipeline import ToolRegistry, call_tool
from ads_mcp.tools import build_registry

APP_NAME = "mcp-google-ads"
APP_VER = __version__
MCP_PROTO_DEFAULT = "2024-11-05"
SUPPORTED_MCP_VERSIONS: List[str] = ["2024-11-05"]

# ---------- Logging ----------
logging.basicConfig(level=logging.INFO)
log = logging.getLogger(APP_NAME)


# ---------- Protocol negotiation ----------
def _latest_supported_protocol() -> str:
    return SUPPORTED_MCP_VERSIONS[-1]

def _validate_protocol_version_string(version: str) -> str:
    """Ensure the protocol version is ISO formatted (YYYY-MM-DD)."""
    try:
        datetime.date.fromisoformat(version)
    except Exception as exc:
        raise ValueError("Invalid protocol version format") from exc
    return version

def _negotiate_protocol_version(requested: Optional[str]) -> Optional[str]:
    """Pick the newest supported version that does not exceed the request."""
    if requested is None:
        return _latest_supported_protocol()
    for version in reversed(SUPPORTED_MCP_VERSIONS):
        if version <= requested:
            return version
    return None


# ---------- Middleware ----------
class RequestId(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Trust a client-provided ID if present; otherwise generate one
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        request.state.request_id = rid
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


class RPCAudit(BaseHTTPMiddleware):
    """One log line per JSON-RPC POST: method, UA and which auth headers were sent."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/" and request.method == "POST":
            body_bytes = await request.body()

            # Re-inject the body for downstream handlers
            async def receive() -> Message:
                return {"type": "http.request", "body": body_bytes, "more_body": False}
            request._receive = receive  # type: ignore[attr-defined]

            method = "unknown"
            try:
                payload = json.loads(body_bytes.decode("utf-8") or "{}")
                method = "batch" if isinstance(payload, list) else (payload.get("method") or "").lower()
            except (ValueError, AttributeError):
                pass

            auth = request.headers.get("authorization", "")
            log.info(
                "RPC method=%s ua=%s key:x=%s bearer=%s rid=%s",
                method,
                request.headers.get("user-agent", ""),
                "X-MCP-Key" in request.headers,
                auth.lower().startswith("bearer "),
                getattr(request.state, "request_id", "-"),
            )

        return await call_next(request)


class MCPProtocolHeader(BaseHTTPMiddleware):
    """Finalizes MCP-Protocol-Version based on what initialize negotiated."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        final_proto = getattr(request.state, "mcp_protocol_version", None) or _latest_supported_protocol()
        response.headers["MCP-Protocol-Version"] = final_proto
        return response


# ---------- MCP helpers ----------
def mcp_ok_json(data: Any) -> Dict[str, Any]:
    """Exactly one text content item holding pretty-printed JSON."""
    return {"content": [{"type": "text", "text": json.dumps(data, indent=2, default=str)}]}

def _build_jsonrpc_error(_id: Any, code: int, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"jsonrpc": "2.0", "id": _id, "error": {"code": code, "message": message}}
    if data is not None:
        body["error"]["data"] = data
    return body

def _registry(request: Request) -> ToolRegistry:
    return request.app.state.registry

def _gateway(request: Request) -> AdsGateway:
    return request.app.state.gateway

def _shared_key(request: Request) -> str:
    settings: Optional[Settings] = getattr(request.app.state, "settings", None)
    return settings.shared_key if settings else ""

def _is_authed(request: Request) -> bool:
    """Shared-secret auth check; open when no key is configured."""
    key = _shared_key(request)
    if not key:
        return True
    auth_hdr = request.headers.get("Authorization", "")
    bearer_ok = auth_hdr.lower().startswith("bearer ") and auth_hdr.split(" ", 1)[1].strip() == key
    xhdr_ok = request.headers.get("X-MCP-Key", "") == key
    return bearer_ok or xhdr_ok


# ---------- Health & discovery ----------
async def root_get(request: Request):
    if request.method == "HEAD":
        return PlainTextResponse("")
    return JSONResponse({
        "ok": True,
        "message": "MCP server. POST / for JSON-RPC; see /.well-known/mcp.json and /mcp/*"
    })

def favicon():
    return Response(status_code=204)

def mcp_discovery(request: Request):
    if _shared_key(request):
        auth = {
            "type": "shared-secret",
            "tokenHeader": "Authorization",  # prefer Bearer
            "scheme": "Bearer",
            "altHeaders": ["X-MCP-Key"],
        }
    else:
        auth = {"type": "none"}

    return JSONResponse({
        "mcpVersion": _latest_supported_protocol(),
        "supportedVersions": SUPPORTED_MCP_VERSIONS,
        "name": APP_NAME,
        "version": APP_VER,
        "auth": auth,
        "capabilities": {"tools": {"listChanged": False}},
        "endpoints": {"rpc": "/"},
        "tools": _registry(request).list_tools(),
    })

def mcp_tools(request: Request):
    return JSONResponse({"tools": _registry(request).list_tools()})


# ---------- JSON-RPC ----------
async def _handle_single_rpc(obj: Any, request: Request, headers: Dict[str, str]) -> Optional[Dict[str, Any]]:
    """Handle one JSON-RPC object and return a JSON-RPC response object, or None for notifications."""
    if not isinstance(obj, dict):
        return _build_jsonrpc_error(None, -32600, "Invalid Request")

    rid = getattr(request.state, "request_id", "-")
    payload = obj
    is_notification = ("id" not in payload and payload.get("jsonrpc") == "2.0" and "method" in payload)
    _id = payload.get("id")
    method = (payload.get("method") or "").lower()

    def success(result: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if is_notification:
            return None
        return {"jsonrpc": "2.0", "id": _id, "result": result}

    def error(code: int, message: str, data: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        if is_notification:
            return None
        return _build_jsonrpc_error(_id, code, message, data)

    # ---- Auth gate (JSON-RPC error only; don't flip outer HTTP status) ----
    if method == "tools/call" and not _is_authed(request):
        tool_name = (payload.get("params") or {}).get("name")
        log.warning(
            "401 on tools/call tool=%s has_bearer=%s has_xmcp=%s rid=%s",
            tool_name,
            request.headers.get("Authorization", "").lower().startswith("bearer "),
            "X-MCP-Key" in request.headers,
            rid,
        )
        headers["WWW-Authenticate"] = f'Bearer realm="{APP_NAME}"'
        return error(UNAUTHORIZED, "Unauthorized")

    # ---------------- initialize ----------------
    if method == "initialize":
        raw_proto = (
            (payload.get("params") or {}).get("protocolVersion")
            or request.headers.get("MCP-Protocol-Version")
            or None
        )

        try:
            requested = _validate_protocol_version_string(raw_proto) if raw_proto else None
        except ValueError:
            latest = _latest_supported_protocol()
            headers["MCP-Protocol-Version"] = latest
            request.state.mcp_protocol_version = latest
            return error(INVALID_PARAMS, "Invalid protocolVersion format", {"supportedVersions": SUPPORTED_MCP_VERSIONS})

        negotiated = _negotiate_protocol_version(requested)
        if negotiated is None:
            latest = _latest_supported_protocol()
            headers["MCP-Protocol-Version"] = latest
            request.state.mcp_protocol_version = latest
            return error(INVALID_PARAMS, "Unsupported protocolVersion", {"supportedVersions": SUPPORTED_MCP_VERSIONS})

        headers["MCP-Protocol-Version"] = negotiated
        request.state.mcp_protocol_version = negotiated

        log.info("protocol negotiated requested=%s -> %s rid=%s", raw_proto, negotiated, rid)

        return success({
            "protocolVersion": negotiated,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": APP_NAME, "version": APP_VER},
            "tools": _registry(request).list_tools(),
        })

    # ---------------- initialized ack ----------------
    if method in ("initialized", "notifications/initialized"):
        return success({"ok": True})

    # ---------------- tools/list ----------------
    if method == "tools/list":
        return success({"tools": _registry(request).list_tools()})

    # ---------------- tools/call ----------------
    if method == "tools/call":
        params = payload.get("params") or {}
        name = params.get("name")
        arguments = params.get("arguments")

        log.info("tools/call start name=%s rid=%s", name, rid)
        try:
            data = await call_tool(_registry(request), _gateway(request), name, arguments)
        except UnknownToolError as exc:
            log.warning("tools/call unknown name=%s rid=%s", name, rid)
            return error(METHOD_NOT_FOUND, exc.message)
        except ArgumentError as exc:
            log.warning("tools/call invalid name=%s rid=%s error=%s", name, rid, exc.message)
            return error(INTERNAL_ERROR, f"Tool execution failed: {exc.message}", exc.to_error_data())
        except ToolError as exc:
            log.warning("tools/call failed name=%s kind=%s rid=%s error=%s", name, exc.kind, rid, exc.message)
            return error(INTERNAL_ERROR, f"Tool execution failed: {exc.message}", exc.to_error_data())

        log.info("tools/call ok name=%s rid=%s", name, rid)
        return success(mcp_ok_json(data))

    # ---------------- fallback ----------------
    return error(METHOD_NOT_FOUND, f"Method not found: {method}")


async def rpc(request: Request):
    """JSON-RPC endpoint that supports single objects and batches."""
    proto_header = request.headers.get("MCP-Protocol-Version", MCP_PROTO_DEFAULT)
    headers: Dict[str, str] = {"MCP-Protocol-Version": proto_header}
    rid = getattr(request.state, "request_id", "-")

    def _sync_protocol_header() -> None:
        negotiated = getattr(request.state, "mcp_protocol_version", None)
        if negotiated:
            headers["MCP-Protocol-Version"] = negotiated
        elif not headers.get("MCP-Protocol-Version"):
            headers["MCP-Protocol-Version"] = _latest_supported_protocol()

    try:
        payload = await request.json()
    except ValueError:
        _sync_protocol_header()
        return JSONResponse(_build_jsonrpc_error(None, -32700, "Parse error"), headers=headers)

    try:
        if isinstance(payload, list):
            responses: List[Dict[str, Any]] = []
            for entry in payload:
                resp = await _handle_single_rpc(entry, request, headers)
                _sync_protocol_header()
                if resp is not None:
                    responses.append(resp)
            log.info("resp headers: %s rid=%s", headers, rid)
            return JSONResponse(responses, status_code=200, headers=headers)

        resp = await _handle_single_rpc(payload, request, headers)
        _sync_protocol_header()
        log.info("resp headers: %s rid=%s", headers, rid)

        if resp is not None:
            return JSONResponse(resp, status_code=200, headers=headers)
        return Response(status_code=200, headers=headers)

    except Exception as e:
        log.exception("RPC dispatch error")
        _sync_protocol_header()
        return JSONResponse(
            {"jsonrpc": "2.0", "id": None, "error": {"code": -32098, "message": f"RPC dispatch error: {e}"}},
            headers=headers,
        )


# ---------- App factory ----------
def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[AdsGateway] = None,
    registry: Optional[ToolRegistry] = None,
) -> FastAPI:
    """Build the ASGI app.

    Missing ``settings``/``gateway`` are resolved from the environment when the
    app starts; a bad configuration aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.settings is None:
            try:
                app.state.settings = Settings.from_env()
            except ConfigError as exc:
                log.error("startup aborted: %s", exc)
                raise
        if app.state.gateway is None:
            app.state.gateway = GoogleAdsGateway(app.state.settings)
        log.info(
            "%s %s ready customer=%s tools=%d auth=%s",
            APP_NAME, APP_VER, app.state.gateway.customer_id, len(app.state.registry),
            "shared-secret" if app.state.settings.shared_key else "none",
        )
        yield

    app = FastAPI(title=APP_NAME, version=APP_VER, lifespan=lifespan)
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.registry = registry or build_registry()

    # add_middleware wraps: the last one added runs outermost
    # 4) MCP protocol header (innermost)
    app.add_middleware(MCPProtocolHeader)
    # 3) RPC audit logging (reads body once, reinjects it)
    app.add_middleware(RPCAudit)
    # 2) Request ID (available to everything below)
    app.add_middleware(RequestId)
    # 1) CORS (outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,  # must be False when allow_origins=["*"]
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["MCP-Protocol-Version", "Mcp-Session-Id", "X-Request-ID"],
    )

    app.add_api_route("/", root_get, methods=["GET", "HEAD"], include_in_schema=False)
    for path in ("/favicon.ico", "/favicon.png", "/favicon.svg"):
        app.add_api_route(path, favicon, methods=["GET"], include_in_schema=False)
    app.add_api_route("/.well-known/mcp.json", mcp_discovery, methods=["GET"])
    app.add_api_route("/mcp/tools", mcp_tools, methods=["GET"])
    app.add_api_route("/", rpc, methods=["POST"])
    return app


app = create_app()

# ---------- Local dev ----------
if __name__ == "__main__":
    import uvicorn
    _settings = Settings.from_env()
    uvicorn.run(create_app(_settings), host="0.0.0.0", port=_settings.port)
