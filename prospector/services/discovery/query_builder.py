"""Query intent classification and engine query construction."""

from __future__ import annotations

import re
from typing import Final

from prospector.models.search import ExtractedEntities, FilterState

MAX_NAME_TOKENS: Final = 4

LEGAL_SUFFIXES: Final[tuple[str, ...]] = (
    "pty ltd",
    "pvt ltd",
    "co ltd",
    "incorporated",
    "corporation",
    "company",
    "limited",
    "gmbh & co kg",
    "gmbh",
    "s.a.s",
    "s.p.a",
    "s.a",
    "s.r.l",
    "n.v",
    "b.v",
    "inc",
    "corp",
    "llc",
    "llp",
    "ltd",
    "plc",
    "ag",
    "se",
    "sa",
    "sas",
    "spa",
    "srl",
    "bv",
    "nv",
    "ab",
    "oy",
    "kg",
    "co",
)
_SUFFIX_PATTERN = re.compile(
    r"[\s,]+(?:"
    + "|".join(re.escape(suffix) for suffix in LEGAL_SUFFIXES)
    + r")\.?$",
    flags=re.IGNORECASE,
)

COMPANY_NOUNS: Final = frozenset(
    {
        "companies",
        "firms",
        "businesses",
        "manufacturers",
        "suppliers",
        "distributors",
        "vendors",
        "providers",
        "startups",
        "brands",
        "producers",
        "makers",
        "agencies",
        "retailers",
        "wholesalers",
        "exporters",
        "importers",
        "players",
    }
)
SECTOR_WORDS: Final = frozenset(
    {
        "food",
        "foods",
        "ingredients",
        "chemical",
        "chemicals",
        "pharma",
        "pharmaceutical",
        "pharmaceuticals",
        "biotech",
        "tech",
        "technology",
        "fintech",
        "saas",
        "software",
        "logistics",
        "manufacturing",
        "healthcare",
        "medtech",
        "insurtech",
        "retail",
        "ecommerce",
        "b2b",
        "b2c",
        "agriculture",
        "agritech",
        "cosmetics",
        "packaging",
        "automotive",
        "energy",
    }
)
INTENT_WORDS: Final = frozenset(
    {
        "hiring",
        "funding",
        "funded",
        "raising",
        "expanding",
        "expansion",
        "growing",
        "acquiring",
        "looking",
        "like",
        "similar",
    }
)
FILLER_WORDS: Final = frozenset(
    {"in", "for", "with", "near", "across", "from", "that", "who", "which", "to", "and", "or", "of", "the"}
)
SIZE_QUALIFIERS: Final = frozenset(
    {
        "mid-size",
        "midsize",
        "mid-sized",
        "mid-market",
        "small",
        "medium",
        "large",
        "big",
        "enterprise",
        "smb",
        "sme",
        "smes",
        "tiny",
    }
)
DESCRIPTIVE_MARKERS: Final = COMPANY_NOUNS | SECTOR_WORDS | INTENT_WORDS | FILLER_WORDS | SIZE_QUALIFIERS

KNOWN_REGIONS: Final[dict[str, str]] = {
    "asia": "Asia",
    "apac": "APAC",
    "europe": "Europe",
    "european": "Europe",
    "emea": "EMEA",
    "latam": "LATAM",
    "north america": "North America",
    "us": "United States",
    "usa": "United States",
    "uk": "United Kingdom",
    "germany": "Germany",
    "german": "Germany",
    "france": "France",
    "india": "India",
    "china": "China",
    "japan": "Japan",
    "middle east": "Middle East",
    "africa": "Africa",
}
KNOWN_VERTICALS: Final[dict[str, str]] = {
    "food": "Food & Beverage",
    "ingredients": "Food Ingredients",
    "chemical": "Chemicals",
    "chemicals": "Chemicals",
    "pharma": "Pharma",
    "pharmaceutical": "Pharma",
    "biotech": "Biotech",
    "fintech": "Fintech",
    "saas": "SaaS",
    "software": "Software",
    "logistics": "Logistics",
    "healthcare": "Healthcare",
    "cosmetics": "Cosmetics",
    "packaging": "Packaging",
    "automotive": "Automotive",
    "energy": "Energy",
}
KNOWN_SIGNALS: Final[dict[str, str]] = {
    "hiring": "hiring",
    "funding": "funding",
    "funded": "funding",
    "raising": "funding",
    "expanding": "expansion",
    "expansion": "expansion",
}

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9&'.-]*", flags=re.IGNORECASE)


def _tokens(text: str) -> list[str]:
    return [token.lower().strip(".") for token in _TOKEN_PATTERN.findall(text or "")]


def strip_legal_suffix(text: str) -> str:
    """Remove one trailing legal-entity suffix (``Inc``, ``GmbH``, ``SE``...)."""
    trimmed = (text or "").strip()
    stripped = _SUFFIX_PATTERN.sub("", trimmed).strip()
    return stripped or trimmed


def looks_like_company_name(text: str) -> bool:
    """Return True when free text reads as a specific company rather than a cohort."""
    candidate = strip_legal_suffix(text)
    if not candidate:
        return False
    words = candidate.split()
    if len(words) > MAX_NAME_TOKENS:
        return False
    return not any(token in DESCRIPTIVE_MARKERS for token in _tokens(candidate))


def build_search_query(filters: FilterState | None, free_text: str | None = None) -> str:
    """Combine free text and structured filters into one engine query string."""
    parts: list[str] = []
    if free_text and free_text.strip():
        parts.append(free_text.strip())
    if filters is not None:
        if filters.verticals:
            parts.append(f"industry: {' OR '.join(filters.verticals)}")
        if filters.regions:
            parts.append(f"region: {' OR '.join(filters.regions)}")
        if filters.signals:
            parts.append(f"signals: {', '.join(filters.signals)}")
    return " ".join(parts)


def simplify_query(text: str) -> str:
    """Drop size qualifiers, intent words and filler so a broader query can be retried."""
    original = (text or "").strip()
    dropped = SIZE_QUALIFIERS | INTENT_WORDS | FILLER_WORDS
    kept = [word for word in original.split() if word.lower().strip(",.") not in dropped]
    simplified = " ".join(kept).strip()
    return simplified or original


def extract_entities(text: str, filters: FilterState | None = None) -> ExtractedEntities:
    """Keyword-based entity extraction from free text, merged with filter values."""
    lowered = f" {' '.join(_tokens(text))} "
    verticals: list[str] = list(filters.verticals) if filters else []
    regions: list[str] = list(filters.regions) if filters else []
    signals: list[str] = list(filters.signals) if filters else []

    for keyword, label in KNOWN_VERTICALS.items():
        if f" {keyword} " in lowered and label not in verticals:
            verticals.append(label)
    for keyword, label in KNOWN_REGIONS.items():
        if f" {keyword} " in lowered and label not in regions:
            regions.append(label)
    for keyword, label in KNOWN_SIGNALS.items():
        if f" {keyword} " in lowered and label not in signals:
            signals.append(label)
    return ExtractedEntities(verticals=verticals, regions=regions, signals=signals)
