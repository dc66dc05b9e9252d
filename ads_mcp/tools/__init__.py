"""Tool catalogue, one module per resource family."""

from ..pipeline import ToolRegistry
from . import accounts, ad_groups, ads, analytics, campaigns, conversions, keywords, performance, shopping

MODULES = (campaigns, ad_groups, ads, keywords, conversions, shopping, performance, analytics, accounts)


def build_registry() -> ToolRegistry:
    registry = ToolRegistry()
    for module in MODULES:
        registry.extend(module.TOOLS)
    return registry
