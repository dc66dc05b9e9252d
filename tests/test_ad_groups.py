import pytest

from ads_mcp.errors import ArgumentError, NotFoundError
from conftest import CUSTOMER_ID, FakeGateway


def test_list_ad_groups(run_tool):
    gateway = FakeGateway(results=[[{
        "ad_group": {
            "id": 22,
            "name": "Shoes",
            "status": "ENABLED",
            "campaign": f"customers/{CUSTOMER_ID}/campaigns/11",
            "cpc_bid_micros": "1500000",
        },
        "campaign": {"name": "Brand"},
        "metrics": {"cost_micros": "3000000", "conversions_value": 120.5},
    }]])
    result = run_tool(gateway, "list_ad_groups", {"campaignId": "11"})

    gaql = gateway.queries[0].gaql
    assert "campaign.id = 11" in gaql
    assert "ad_group.status != 'REMOVED'" in gaql
    assert gaql.endswith("ORDER BY ad_group.id DESC LIMIT 100")

    group = result[0]
    assert group["id"] == "22"
    assert group["campaignId"] == "11"
    assert group["cpcBidMicros"] == 1_500_000
    assert group["targetRoas"] is None
    assert group["metrics"]["cost"] == 3.0
    assert group["metrics"]["conversionsValue"] == 120.5


def test_get_ad_group_not_found(run_tool):
    with pytest.raises(NotFoundError) as exc:
        run_tool(FakeGateway(results=[[]]), "get_ad_group", {"adGroupId": "22"})
    assert exc.value.message == "Ad group not found: 22"


def test_create_ad_group_defaults_enabled(run_tool):
    gateway = FakeGateway(resource_names=[f"customers/{CUSTOMER_ID}/adGroups/23"])
    result = run_tool(gateway, "create_ad_group", {"campaignId": "11", "name": "Boots", "cpcBidMicros": 900000})
    (op,) = gateway.mutations[0]
    assert op["ad_group_operation"]["create"] == {
        "campaign": f"customers/{CUSTOMER_ID}/campaigns/11",
        "name": "Boots",
        "status": "ENABLED",
        "cpc_bid_micros": 900_000,
    }
    assert result["adGroupId"] == "23"


def test_update_ad_group_mask_lists_supplied_fields(run_tool):
    gateway = FakeGateway()
    run_tool(gateway, "update_ad_group", {"adGroupId": "22", "targetRoas": 3.5, "status": "PAUSED"})
    (op,) = gateway.mutations[0]
    assert op["ad_group_operation"]["update_mask"] == {"paths": ["status", "target_roas"]}
    assert op["ad_group_operation"]["update"]["target_roas"] == 3.5


def test_update_ad_group_requires_a_change(run_tool):
    gateway = FakeGateway()
    with pytest.raises(ArgumentError):
        run_tool(gateway, "update_ad_group", {"adGroupId": "22"})
    assert gateway.calls == 0


def test_negative_bid_rejected(run_tool):
    with pytest.raises(ArgumentError):
        run_tool(FakeGateway(), "update_ad_group", {"adGroupId": "22", "cpcBidMicros": -1})
