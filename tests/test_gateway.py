import re
from types import SimpleNamespace

import pytest
from google.ads.googleads.client import GoogleAdsClient

from ads_mcp.errors import NotFoundError
from ads_mcp.gateway import GoogleAdsGateway, _result_resource_name, _row_to_dict
from ads_mcp.tools.analytics import KEYWORD_ORDER_FIELDS
from ads_mcp.tools.shopping import PRODUCT_ORDER_FIELDS
from conftest import CUSTOMER_ID, FakeGateway, make_settings


@pytest.fixture(scope="module")
def ads_client():
    # types and enums only; no service is ever built from this client
    return GoogleAdsClient(credentials=None, developer_token="dev-token", use_proto_plus=True)


class StubAdsService:
    def __init__(self, rows=(), response=None):
        self.rows = list(rows)
        self.response = response
        self.requests = []

    def search(self, request):
        self.requests.append(request)
        return iter(self.rows)

    def mutate(self, request):
        self.requests.append(request)
        return self.response


def _gateway(service):
    return GoogleAdsGateway(make_settings(), client=SimpleNamespace(get_service=lambda name: service))


def test_row_to_dict_drops_field_name_suffix(ads_client):
    row = ads_client.get_type("GoogleAdsRow")
    row.conversion_action.id = 501
    row.conversion_action.type_ = ads_client.enums.ConversionActionTypeEnum.WEBPAGE
    row.campaign.start_date_time = "2024-01-01 00:00:00"

    data = _row_to_dict(row)
    assert data["conversion_action"]["type"] == "WEBPAGE"
    assert "type_" not in data["conversion_action"]
    assert data["campaign"]["start_date_time"] == "2024-01-01 00:00:00"


def test_conversion_action_type_from_real_row(ads_client, run_tool):
    row = ads_client.get_type("GoogleAdsRow")
    row.conversion_action.id = 501
    row.conversion_action.name = "Checkout"
    row.conversion_action.category = ads_client.enums.ConversionActionCategoryEnum.PURCHASE
    row.conversion_action.type_ = ads_client.enums.ConversionActionTypeEnum.WEBPAGE
    service = StubAdsService(rows=[row])

    (action,) = run_tool(_gateway(service), "list_conversion_actions", {})
    assert service.requests[0]["customer_id"] == CUSTOMER_ID
    assert action["id"] == "501"
    assert action["category"] == "PURCHASE"
    assert action["type"] == "WEBPAGE"


def test_ad_type_and_assets_from_real_row(ads_client, run_tool):
    row = ads_client.get_type("GoogleAdsRow")
    row.ad_group_ad.ad_group = f"customers/{CUSTOMER_ID}/adGroups/22"
    row.ad_group_ad.ad.id = 9
    row.ad_group_ad.ad.type_ = ads_client.enums.AdTypeEnum.RESPONSIVE_SEARCH_AD
    headline = ads_client.get_type("AdTextAsset")
    headline.text = "Fast shoes"
    row.ad_group_ad.ad.responsive_search_ad.headlines.append(headline)

    (ad,) = run_tool(_gateway(StubAdsService(rows=[row])), "list_ads", {})
    assert ad["id"] == "9"
    assert ad["type"] == "RESPONSIVE_SEARCH_AD"
    assert ad["adGroupId"] == "22"
    assert ad["headlines"] == ["Fast shoes"]


def test_listing_group_type_from_real_row(ads_client, run_tool):
    row = ads_client.get_type("GoogleAdsRow")
    row.ad_group_criterion.criterion_id = 5
    row.ad_group_criterion.listing_group.type_ = ads_client.enums.ListingGroupTypeEnum.UNIT
    row.ad_group_criterion.listing_group.case_value.product_brand.value = "Acme"
    row.ad_group_criterion.cpc_bid_micros = 1_200_000

    (partition,) = run_tool(
        _gateway(StubAdsService(rows=[row])), "get_product_partition_performance", {"adGroupId": "22"},
    )
    assert partition["criterionId"] == "5"
    assert partition["listingGroupType"] == "UNIT"
    assert partition["productBrand"] == "Acme"
    assert partition["cpcBidMicros"] == 1_200_000


def test_result_resource_name_follows_response_oneof(ads_client):
    budget = ads_client.get_type("MutateOperationResponse")
    budget.campaign_budget_result.resource_name = f"customers/{CUSTOMER_ID}/campaignBudgets/55"
    campaign = ads_client.get_type("MutateOperationResponse")
    campaign.campaign_result.resource_name = f"customers/{CUSTOMER_ID}/campaigns/88"
    empty = ads_client.get_type("MutateOperationResponse")

    assert _result_resource_name(budget).endswith("/campaignBudgets/55")
    assert _result_resource_name(campaign).endswith("/campaigns/88")
    assert _result_resource_name(empty) == ""


def test_create_campaign_through_real_request_types(ads_client, run_tool):
    response = ads_client.get_type("MutateGoogleAdsResponse")
    for attr, rn in (("campaign_budget_result", "campaignBudgets/55"), ("campaign_result", "campaigns/88")):
        op = ads_client.get_type("MutateOperationResponse")
        getattr(op, attr).resource_name = f"customers/{CUSTOMER_ID}/{rn}"
        response.mutate_operation_responses.append(op)
    service = StubAdsService(response=response)

    result = run_tool(_gateway(service), "create_campaign", {
        "name": "Spring Sale", "budget": 12.5, "advertisingChannelType": "SEARCH",
    })
    assert result["id"] == "88"
    assert result["budgetResourceName"].endswith("/campaignBudgets/55")

    # the service builds this same message from the dict before sending it
    request = type(ads_client.get_type("MutateGoogleAdsRequest"))(service.requests[0])
    create = request.mutate_operations[1].campaign_operation.create
    assert create.contains_eu_political_advertising.name == "DOES_NOT_CONTAIN_EU_POLITICAL_ADVERTISING"
    assert create.campaign_budget == f"customers/{CUSTOMER_ID}/campaignBudgets/-1"
    assert request.mutate_operations[0].campaign_budget_operation.create.amount_micros == 12_500_000


READ_CALLS = [
    ("list_campaigns", {}),
    ("get_campaign", {"campaignId": "1"}),
    ("update_campaign", {"campaignId": "1", "budget": 5}),
    ("list_ad_groups", {}),
    ("get_ad_group", {"adGroupId": "1"}),
    ("list_ads", {}),
    ("get_ad_performance", {"adId": "1", "adGroupId": "2"}),
    ("list_keywords", {}),
    ("get_keyword_performance", {"keywordId": "1", "adGroupId": "2"}),
    ("list_conversion_actions", {}),
    ("get_conversion_stats", {}),
    ("get_product_performance", {}),
    ("get_product_partition_performance", {"adGroupId": "1"}),
    ("get_top_bottom_products", {"metric": "COST"}),
    ("get_account_performance", {}),
    ("get_campaign_performance", {"campaignId": "1"}),
    ("get_ad_group_performance", {}),
    ("get_search_terms_report", {}),
    ("get_top_bottom_keywords", {"metric": "COST"}),
    ("get_keyword_opportunities", {}),
    ("get_campaign_comparison", {}),
    ("get_account_hierarchy", {}),
    ("get_account_info", {"customerId": "1"}),
    ("list_manager_accounts", {}),
]

FIELD_PATH = re.compile(r"\b[a-z_]+(?:\.[a-z0-9_]+)+")


def _gaql_fields(gaql):
    return set(FIELD_PATH.findall(re.sub(r"'[^']*'", "", gaql)))


def _resolves(descriptor, path):
    for part in path.split("."):
        if descriptor is None:
            return False
        field = descriptor.fields_by_name.get(part)
        if field is None:
            return False
        descriptor = field.message_type
    return True


def test_queried_fields_exist_on_google_ads_row(ads_client, run_tool):
    row_descriptor = type(ads_client.get_type("GoogleAdsRow")).pb().DESCRIPTOR
    fields = set(KEYWORD_ORDER_FIELDS.values()) | set(PRODUCT_ORDER_FIELDS.values())
    for name, arguments in READ_CALLS:
        gateway = FakeGateway()
        try:
            run_tool(gateway, name, arguments)
        except NotFoundError:
            pass
        assert gateway.queries, name
        for query in gateway.queries:
            fields |= _gaql_fields(query.gaql)

    assert "campaign.start_date_time" in fields
    missing = sorted(f for f in fields if not _resolves(row_descriptor, f))
    assert missing == []
