from __future__ import annotations

import pytest

from prospector.models.search import FilterState
from prospector.services.discovery.query_builder import (
    build_search_query,
    extract_entities,
    looks_like_company_name,
    simplify_query,
    strip_legal_suffix,
)


@pytest.mark.parametrize(
    "text",
    ["Acme Corp", "BASF", "Brenntag", "BASF SE", "Brenntag AG", "Cereal Docks", "Tata Steel", "Siemens AG."],
)
def test_short_proper_names_are_company_names(text):
    assert looks_like_company_name(text) is True


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "food ingredients companies in Asia",
        "chemical manufacturers hiring",
        "mid-size food ingredients companies expanding to Asia",
        "Nestle food",
        "German chemicals",
        "European pharma",
        "India tech",
        "US fintech",
        "APAC logistics",
        "Dow Chemical",
    ],
)
def test_descriptive_queries_are_not_company_names(text):
    assert looks_like_company_name(text) is False


def test_more_than_four_words_is_discovery():
    assert looks_like_company_name("Alpha Beta Gamma Delta Epsilon") is False
    assert looks_like_company_name("Alpha Beta Gamma Delta") is True


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Acme Corp", "Acme"),
        ("Acme Corp.", "Acme"),
        ("BASF SE", "BASF"),
        ("Brenntag AG", "Brenntag"),
        ("Globex GmbH", "Globex"),
        ("Initech, Inc.", "Initech"),
        ("Tata Steel", "Tata Steel"),
        ("SE", "SE"),
    ],
)
def test_strip_legal_suffix(text, expected):
    assert strip_legal_suffix(text) == expected


def test_build_search_query_combines_text_and_filters():
    filters = FilterState(verticals=["Pharma", "Biotech"], regions=["Europe"], signals=["hiring", "funding"])

    query = build_search_query(filters, "  specialty chemicals  ")

    assert query == "specialty chemicals industry: Pharma OR Biotech region: Europe signals: hiring, funding"


def test_build_search_query_without_text():
    assert build_search_query(FilterState(verticals=["Pharma"])) == "industry: Pharma"
    assert build_search_query(FilterState(), "") == ""


def test_simplify_query_strips_size_qualifiers():
    simplified = simplify_query("mid-size food companies")

    assert "mid-size" not in simplified
    assert "food" in simplified


def test_simplify_query_keeps_original_when_nothing_left():
    assert simplify_query("expanding") == "expanding"
    assert simplify_query(" BASF ") == "BASF"


def test_extract_entities_merges_filters_and_keywords():
    filters = FilterState(verticals=["Chemicals"], regions=["LATAM"])

    entities = extract_entities("chemical distributors hiring in Asia", filters)

    assert entities.verticals == ["Chemicals"]
    assert entities.regions == ["LATAM", "Asia"]
    assert entities.signals == ["hiring"]
