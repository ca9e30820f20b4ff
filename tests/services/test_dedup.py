from __future__ import annotations

from datetime import UTC, datetime

from prospector.services.discovery.dedup import (
    deduplicate_companies,
    get_source_label,
    normalize_domain,
)
from tests.helpers.fake_engines import company, signal

OLDER = datetime(2025, 1, 1, tzinfo=UTC)
NEWER = datetime(2025, 3, 1, tzinfo=UTC)


def test_normalize_domain():
    assert normalize_domain("  WWW.Acme.COM ") == "acme.com"
    assert normalize_domain("acme.com") == "acme.com"
    assert normalize_domain("") == ""


def test_www_prefix_folds_into_one_record():
    merged = deduplicate_companies(
        [company("www.a.com", source="exa"), company("a.com", source="apollo")]
    )

    assert len(merged) == 1
    assert merged[0].domain == "a.com"
    assert merged[0].sources == ["exa", "apollo"]


def test_single_record_group_passes_through_unchanged():
    record = company("WWW.Solo.io", source="serper", contact_count=3)

    merged = deduplicate_companies([record])

    assert merged == [record]


def test_primary_is_most_recent_record():
    stale = company("acme.com", source="exa", name="Acme (stale)", last_refreshed=OLDER)
    fresh = company("acme.com", source="hubspot", name="Acme Inc", last_refreshed=NEWER)

    merged = deduplicate_companies([stale, fresh])

    assert merged[0].name == "Acme Inc"
    assert merged[0].sources == ["hubspot", "exa"]


def test_merge_takes_maximum_contact_count_and_icp_score():
    first = company("acme.com", source="exa", contact_count=5, icp_score=80, last_refreshed=NEWER)
    second = company("acme.com", source="apollo", contact_count=10, icp_score=40, last_refreshed=OLDER)

    merged = deduplicate_companies([first, second])[0]

    assert merged.contact_count == 10
    assert merged.icp_score == 80


def test_backfill_uses_secondary_value_regardless_of_primary():
    primary = company("acme.com", source="exa", last_refreshed=NEWER)
    secondary = company("acme.com", source="apollo", revenue="$1B", founded="1999", last_refreshed=OLDER)

    merged = deduplicate_companies([primary, secondary])[0]
    reversed_merge = deduplicate_companies([secondary, primary])[0]

    assert merged.revenue == "$1B"
    assert merged.founded == "1999"
    assert reversed_merge.revenue == "$1B"


def test_primary_value_is_not_overwritten_by_backfill():
    primary = company("acme.com", source="exa", description="Primary copy", last_refreshed=NEWER)
    secondary = company("acme.com", source="apollo", description="Secondary copy", phone="+1 555", last_refreshed=OLDER)

    merged = deduplicate_companies([primary, secondary])[0]

    assert merged.description == "Primary copy"
    assert merged.phone == "+1 555"


def test_absent_optional_fields_stay_absent():
    merged = deduplicate_companies(
        [company("acme.com", source="exa"), company("acme.com", source="apollo")]
    )[0]

    assert merged.revenue is None
    assert merged.logo_url is None


def test_identical_signal_ids_merge_to_one():
    shared = signal("s1", "acme.com")
    first = company("acme.com", source="exa", signals=[shared], last_refreshed=NEWER)
    second = company(
        "acme.com",
        source="apollo",
        signals=[shared, signal("s2", "acme.com", kind="funding", title="Series B")],
        last_refreshed=OLDER,
    )

    merged = deduplicate_companies([first, second])[0]

    assert [item.id for item in merged.signals] == ["s1", "s2"]


def test_dedup_is_idempotent():
    records = [
        company("www.a.com", source="exa", contact_count=2, last_refreshed=OLDER),
        company("a.com", source="apollo", revenue="$5M", last_refreshed=NEWER),
        company("b.com", source="serper"),
        company("B.com", source="hubspot", signals=[signal("s9", "b.com")]),
        company("c.com", source="parallel"),
    ]

    once = deduplicate_companies(records)
    twice = deduplicate_companies(once)

    assert twice == once
    assert [record.domain for record in once] == ["a.com", "b.com", "c.com"]


def test_get_source_label():
    assert get_source_label([]) == ""
    assert get_source_label(["exa"]) == ""
    assert get_source_label(["exa", "apollo"]) == "Found by Exa + Apollo"
    assert get_source_label(["hubspot", "parallel", "serper"]) == "Found by HubSpot + Parallel + Serper"
    assert get_source_label(["exa", "crm"]) == "Found by Exa + Crm"
