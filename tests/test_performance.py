import pytest

from ads_mcp.errors import ArgumentError, NotFoundError
from conftest import FakeGateway


def test_account_performance_without_activity_reports_zeros(run_tool):
    gateway = FakeGateway(results=[[]])
    result = run_tool(gateway, "get_account_performance", {})
    assert "segments.date DURING LAST_30_DAYS" in gateway.queries[0].gaql
    assert result["dateRange"] == "LAST_30_DAYS"
    assert result["metrics"]["impressions"] == 0
    assert result["metrics"]["cost"] == 0.0
    assert result["metrics"]["impressionShare"] == 0.0


def test_account_performance_extended_range(run_tool):
    gateway = FakeGateway()
    run_tool(gateway, "get_account_performance", {"dateRange": "LAST_YEAR"})
    assert "segments.date BETWEEN" in gateway.queries[0].gaql


def test_account_performance_custom_range_by_day(run_tool):
    gateway = FakeGateway(results=[[
        {"segments": {"date": "2024-01-02"}, "metrics": {"clicks": "3", "cost_micros": "1500000"}},
        {"segments": {"date": "2024-01-01"}, "metrics": {"clicks": "1"}},
    ]])
    result = run_tool(gateway, "get_account_performance", {
        "dateRange": "CUSTOM",
        "customDateRange": {"startDate": "2024-01-01", "endDate": "2024-01-31"},
        "segmentByDate": True,
    })
    gaql = gateway.queries[0].gaql
    assert "segments.date BETWEEN '2024-01-01' AND '2024-01-31'" in gaql
    assert gaql.endswith("ORDER BY segments.date DESC")
    assert [d["date"] for d in result] == ["2024-01-02", "2024-01-01"]
    assert result[0]["metrics"]["cost"] == 1.5


def test_custom_without_dates_makes_no_call(run_tool):
    gateway = FakeGateway()
    with pytest.raises(ArgumentError):
        run_tool(gateway, "get_account_performance", {"dateRange": "CUSTOM"})
    assert gateway.calls == 0


def test_campaign_performance_not_found(run_tool):
    with pytest.raises(NotFoundError):
        run_tool(FakeGateway(results=[[]]), "get_campaign_performance", {"campaignId": "11"})


def test_campaign_performance_summary(run_tool):
    gateway = FakeGateway(results=[[{
        "campaign": {"id": 11, "name": "Brand"},
        "metrics": {"conversions_value": 99.5, "invalid_clicks": "2", "cost_micros": "10000000"},
    }]])
    result = run_tool(gateway, "get_campaign_performance", {"campaignId": "11", "dateRange": "LAST_14_DAYS"})
    assert "segments.date DURING LAST_14_DAYS" in gateway.queries[0].gaql
    assert result["campaignId"] == "11"
    assert result["metrics"]["conversionsValue"] == 99.5
    assert result["metrics"]["invalidClicks"] == 2
    assert result["metrics"]["cost"] == 10.0


def test_ad_group_performance_filters(run_tool):
    gateway = FakeGateway()
    run_tool(gateway, "get_ad_group_performance", {"campaignId": "11", "limit": 5})
    gaql = gateway.queries[0].gaql
    assert "campaign.id = 11" in gaql
    assert "ad_group.id =" not in gaql
    assert gaql.endswith("ORDER BY metrics.impressions DESC LIMIT 5")


def test_search_terms_defaults(run_tool):
    gateway = FakeGateway(results=[[{
        "search_term_view": {"search_term": "red shoes", "status": "NONE"},
        "campaign": {"id": 11},
        "ad_group": {"id": 22},
        "metrics": {"impressions": "50"},
    }]])
    result = run_tool(gateway, "get_search_terms_report", {})
    gaql = gateway.queries[0].gaql
    assert "segments.date DURING LAST_7_DAYS" in gaql
    assert "metrics.impressions >= 10" in gaql
    assert result[0]["searchTerm"] == "red shoes"
    assert result[0]["adGroup"]["id"] == "22"
