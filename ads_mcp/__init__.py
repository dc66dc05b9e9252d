"""Google Ads account, campaign and reporting tools over MCP JSON-RPC."""

__version__ = "0.2.0"
