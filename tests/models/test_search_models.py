from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from prospector.models.company import CompanyRecord
from prospector.models.icp import IcpWeights
from prospector.models.search import DiscoveryRequest, FilterState


def test_request_accepts_camel_case_and_snake_case():
    camel = DiscoveryRequest.model_validate(
        {"freeText": "food companies", "filters": {"hideExcluded": False, "sizes": ["51-200"]}}
    )
    snake = DiscoveryRequest.model_validate({"free_text": "food companies"})

    assert camel.free_text == "food companies"
    assert camel.filters.hide_excluded is False
    assert camel.filters.sizes == ["51-200"]
    assert snake.filters.hide_excluded is True


def test_request_is_empty_ignores_exclusion_flag():
    assert DiscoveryRequest(free_text="   ").is_empty() is True
    assert DiscoveryRequest(filters=FilterState(hide_excluded=False)).is_empty() is True
    assert DiscoveryRequest(filters=FilterState(regions=["Europe"])).is_empty() is False


def test_unknown_size_bucket_is_rejected():
    with pytest.raises(ValidationError):
        FilterState(sizes=["huge"])


def test_company_record_bounds():
    with pytest.raises(ValidationError):
        CompanyRecord(domain="acme.com", name="Acme", icp_score=101)
    with pytest.raises(ValidationError):
        CompanyRecord(domain="acme.com", name="Acme", search_relevance=1.5)
    with pytest.raises(ValidationError):
        CompanyRecord(domain="acme.com", name="Acme", employee_count=-1)


def test_naive_last_refreshed_is_treated_as_utc():
    record = CompanyRecord(domain="acme.com", name="Acme", last_refreshed=datetime(2025, 1, 1))

    assert record.last_refreshed == datetime(2025, 1, 1, tzinfo=UTC)


def test_weights_are_read_only_and_ignore_unknown_keys():
    weights = IcpWeights.model_validate({"vertical_match": 40, "legacy_factor": 3})

    assert weights.vertical_match == 40
    assert not hasattr(weights, "legacy_factor")
    with pytest.raises(ValidationError):
        weights.vertical_match = 10
