import pytest

from ads_mcp.errors import ArgumentError
from conftest import CUSTOMER_ID, FakeGateway


def test_create_conversion_action_defaults(run_tool):
    gateway = FakeGateway(resource_names=[f"customers/{CUSTOMER_ID}/conversionActions/501"])
    result = run_tool(gateway, "create_conversion_action", {
        "name": "Purchases",
        "category": "PURCHASE",
        "valueSettings": {"defaultValue": 40, "defaultCurrencyCode": "EUR"},
    })
    (op,) = gateway.mutations[0]
    action = op["conversion_action_operation"]["create"]
    assert action["type_"] == "WEBPAGE"
    assert action["status"] == "ENABLED"
    assert action["counting_type"] == "ONE_PER_CLICK"
    assert action["attribution_model_settings"] == {"attribution_model": "GOOGLE_ADS_LAST_CLICK"}
    assert action["click_through_lookback_window_days"] == 30
    assert action["view_through_lookback_window_days"] == 1
    assert action["value_settings"] == {
        "always_use_default_value": False,
        "default_value": 40,
        "default_currency_code": "EUR",
    }
    assert result["conversionActionId"] == "501"


def test_create_conversion_action_without_value_settings(run_tool):
    gateway = FakeGateway()
    run_tool(gateway, "create_conversion_action", {"name": "Leads", "category": "LEAD"})
    (op,) = gateway.mutations[0]
    assert "value_settings" not in op["conversion_action_operation"]["create"]


def test_lookback_window_bounds(run_tool):
    with pytest.raises(ArgumentError):
        run_tool(FakeGateway(), "create_conversion_action", {
            "name": "Leads", "category": "LEAD", "clickThroughLookbackWindowDays": 91,
        })


def test_update_conversion_action_partial_value_settings(run_tool):
    gateway = FakeGateway()
    run_tool(gateway, "update_conversion_action", {
        "conversionActionId": "501",
        "valueSettings": {"defaultValue": 55.5},
    })
    (op,) = gateway.mutations[0]
    update = op["conversion_action_operation"]
    assert update["update"] == {
        "resource_name": f"customers/{CUSTOMER_ID}/conversionActions/501",
        "value_settings": {"default_value": 55.5},
    }
    assert update["update_mask"] == {"paths": ["value_settings.default_value"]}


def test_update_conversion_action_attribution_and_name(run_tool):
    gateway = FakeGateway()
    run_tool(gateway, "update_conversion_action", {
        "conversionActionId": "501",
        "name": "Purchases v2",
        "attributionModel": "GOOGLE_SEARCH_ATTRIBUTION_DATA_DRIVEN",
    })
    (op,) = gateway.mutations[0]
    assert op["conversion_action_operation"]["update_mask"] == {
        "paths": ["name", "attribution_model_settings.attribution_model"],
    }


def test_update_conversion_action_requires_change(run_tool):
    gateway = FakeGateway()
    with pytest.raises(ArgumentError):
        run_tool(gateway, "update_conversion_action", {"conversionActionId": "501", "valueSettings": {}})
    assert gateway.calls == 0


def test_list_conversion_actions(run_tool):
    gateway = FakeGateway(results=[[{
        "conversion_action": {
            "id": 501,
            "name": "Purchases",
            "attribution_model_settings": {"attribution_model": "GOOGLE_ADS_LAST_CLICK"},
            "value_settings": {"default_value": 40.0},
        },
        "metrics": {"all_conversions": 12.0, "all_conversions_value": 480.0},
    }]])
    result = run_tool(gateway, "list_conversion_actions", {})
    assert "conversion_action.status != 'REMOVED'" in gateway.queries[0].gaql
    assert result[0]["id"] == "501"
    assert result[0]["attributionModel"] == "GOOGLE_ADS_LAST_CLICK"
    assert result[0]["valueSettings"]["defaultValue"] == 40.0
    assert result[0]["metrics"]["allConversionsValue"] == 480.0


STATS_ROWS = [
    {
        "segments": {"conversion_action": f"customers/{CUSTOMER_ID}/conversionActions/501",
                     "conversion_action_name": "Purchases"},
        "metrics": {"conversions": 3.0, "conversions_value": 150.0, "all_conversions": 4.0},
    },
    {
        "segments": {"conversion_action": f"customers/{CUSTOMER_ID}/conversionActions/502",
                     "conversion_action_name": "Leads"},
        "metrics": {"conversions": 2.0, "conversions_value": 0.0, "all_conversions": 2.0},
    },
]


def test_conversion_stats_per_action(run_tool):
    gateway = FakeGateway(results=[STATS_ROWS])
    result = run_tool(gateway, "get_conversion_stats", {})
    gaql = gateway.queries[0].gaql
    assert "FROM customer" in gaql
    assert "segments.conversion_action" in gaql
    assert [a["id"] for a in result["conversionActions"]] == ["501", "502"]
    assert result["conversionActions"][0]["metrics"]["conversionsValue"] == 150.0


def test_conversion_stats_totals(run_tool):
    gateway = FakeGateway(results=[STATS_ROWS])
    result = run_tool(gateway, "get_conversion_stats", {
        "segmentByConversionAction": False, "conversionActionId": "501",
    })
    assert f"segments.conversion_action = 'customers/{CUSTOMER_ID}/conversionActions/501'" in gateway.queries[0].gaql
    assert result["totals"] == {
        "conversions": 5.0, "conversionsValue": 150.0, "allConversions": 6.0, "allConversionsValue": 0.0,
    }
