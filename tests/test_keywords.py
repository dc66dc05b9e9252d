import pytest

from ads_mcp.errors import ArgumentError, NotFoundError
from conftest import CUSTOMER_ID, FakeGateway

KEYWORDS = [{"text": "running shoes", "matchType": "PHRASE"}]


def test_list_keywords_filters_combine(run_tool):
    gateway = FakeGateway(results=[[{
        "ad_group_criterion": {
            "criterion_id": 33,
            "keyword": {"text": "running shoes", "match_type": "PHRASE"},
            "status": "ENABLED",
            "negative": False,
            "cpc_bid_micros": "1200000",
        },
        "ad_group": {"id": 22, "name": "Shoes"},
        "campaign": {"id": 11, "name": "Brand"},
        "metrics": {"impressions": "10", "clicks": "2", "cost_micros": "900000"},
    }]])
    result = run_tool(gateway, "list_keywords", {"campaignId": "11", "adGroupId": "22"})

    gaql = gateway.queries[0].gaql
    assert "campaign.id = 11 AND ad_group.id = 22" in gaql
    assert "ad_group_criterion.negative = FALSE" in gaql
    assert "ORDER BY metrics.impressions DESC LIMIT 100" in gaql
    assert result[0]["id"] == "33"
    assert result[0]["cpcBid"] == 1.2
    assert result[0]["metrics"]["cost"] == 0.9


def test_list_keywords_can_include_negatives(run_tool):
    gateway = FakeGateway()
    run_tool(gateway, "list_keywords", {"includeNegative": True})
    assert "negative" not in gateway.queries[0].gaql.split("WHERE", 1)[1]


def test_add_keywords_one_operation_each(run_tool):
    gateway = FakeGateway(resource_names=[
        f"customers/{CUSTOMER_ID}/adGroupCriteria/22~301",
        f"customers/{CUSTOMER_ID}/adGroupCriteria/22~302",
    ])
    result = run_tool(gateway, "add_keywords", {
        "adGroupId": "22",
        "keywords": [
            {"text": "running shoes", "matchType": "EXACT", "cpcBidMicros": 1500000},
            {"text": "trail shoes", "matchType": "BROAD"},
        ],
    })
    first, second = gateway.mutations[0]
    assert first["ad_group_criterion_operation"]["create"]["cpc_bid_micros"] == 1_500_000
    assert "cpc_bid_micros" not in second["ad_group_criterion_operation"]["create"]
    assert second["ad_group_criterion_operation"]["create"]["ad_group"] == f"customers/{CUSTOMER_ID}/adGroups/22"
    assert [k["id"] for k in result["keywords"]] == ["301", "302"]
    assert result["addedKeywords"] == 2


def test_add_keywords_rejects_long_text(run_tool):
    with pytest.raises(ArgumentError):
        run_tool(FakeGateway(), "add_keywords", {
            "adGroupId": "22", "keywords": [{"text": "x" * 81, "matchType": "EXACT"}],
        })


def test_negative_keywords_need_a_scope(run_tool):
    gateway = FakeGateway()
    with pytest.raises(ArgumentError) as exc:
        run_tool(gateway, "add_negative_keywords", {"keywords": KEYWORDS})
    assert "Either campaignId or adGroupId must be provided" in exc.value.message
    assert gateway.calls == 0


def test_negative_keywords_campaign_level(run_tool):
    gateway = FakeGateway()
    result = run_tool(gateway, "add_negative_keywords", {"campaignId": "11", "keywords": KEYWORDS})
    (op,) = gateway.mutations[0]
    assert op["campaign_criterion_operation"]["create"] == {
        "campaign": f"customers/{CUSTOMER_ID}/campaigns/11",
        "negative": True,
        "keyword": {"text": "running shoes", "match_type": "PHRASE"},
    }
    assert result["level"] == "campaign"


def test_negative_keywords_ad_group_wins(run_tool):
    gateway = FakeGateway()
    result = run_tool(gateway, "add_negative_keywords", {
        "campaignId": "11", "adGroupId": "22", "keywords": KEYWORDS,
    })
    (op,) = gateway.mutations[0]
    criterion = op["ad_group_criterion_operation"]["create"]
    assert criterion["negative"] is True
    assert criterion["ad_group"] == f"customers/{CUSTOMER_ID}/adGroups/22"
    assert result["level"] == "ad_group"


def test_update_keyword_status_only_mask(run_tool):
    gateway = FakeGateway(resource_names=[f"customers/{CUSTOMER_ID}/adGroupCriteria/22~33"])
    result = run_tool(gateway, "update_keyword", {"keywordId": "33", "adGroupId": "22", "status": "PAUSED"})
    (op,) = gateway.mutations[0]
    update = op["ad_group_criterion_operation"]
    assert update["update_mask"] == {"paths": ["status"]}
    assert update["update"] == {
        "resource_name": f"customers/{CUSTOMER_ID}/adGroupCriteria/22~33",
        "status": "PAUSED",
    }
    assert result["keywordId"] == "33"


def test_update_keyword_needs_a_change(run_tool):
    gateway = FakeGateway()
    with pytest.raises(ArgumentError):
        run_tool(gateway, "update_keyword", {"keywordId": "33", "adGroupId": "22"})
    assert gateway.calls == 0


def test_keyword_performance_reads_quality_info(run_tool):
    gateway = FakeGateway(results=[[{
        "ad_group_criterion": {
            "criterion_id": "33",
            "keyword": {"text": "running shoes", "match_type": "EXACT"},
            "quality_info": {"quality_score": 7, "search_predicted_ctr": "ABOVE_AVERAGE"},
        },
        "metrics": {"clicks": "5", "search_impression_share": 0.42},
    }]])
    result = run_tool(gateway, "get_keyword_performance", {"keywordId": "33", "adGroupId": "22"})
    assert "ad_group_criterion.quality_info.quality_score" in gateway.queries[0].gaql
    assert "segments.date DURING LAST_30_DAYS" in gateway.queries[0].gaql
    assert result["qualityScore"]["score"] == 7
    assert result["qualityScore"]["expectedCtr"] == "ABOVE_AVERAGE"
    assert result["metrics"]["impressionShare"] == 0.42


def test_keyword_performance_not_found(run_tool):
    with pytest.raises(NotFoundError):
        run_tool(FakeGateway(results=[[]]), "get_keyword_performance", {"keywordId": "33", "adGroupId": "22"})
