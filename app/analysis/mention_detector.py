"""Company Mention Detector.

Decides which tracked companies (brand + competitors) a piece of text refers to:
  a. Full name, not embedded inside a longer word
  b. Core name of a corporate-suffixed name ("Ford Motor Company" → "Ford Motor")
  c. First token of the name, when longer than 3 characters

Short first tokens ("Go", "HP") are only matched through (a).
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from app.analysis.types import Citation

logger = logging.getLogger(__name__)

# "Acme Inc", "Ford Motor Company", "General Electric Corporation"
_CORPORATE_SUFFIX_PATTERN = re.compile(
    r"^([A-Za-z]+(?:\s+[A-Za-z]+)?)\s+(?:Motor\s+)?(?:Company|Corporation|Corp|Inc|Ltd|Limited|LLC)",
    re.IGNORECASE,
)

_MIN_FIRST_TOKEN_LENGTH = 4


def _bounded_pattern(name: str) -> re.Pattern:
    """Case-insensitive pattern that refuses matches inside a longer word."""
    return re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)


def _word_pattern(word: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)


def is_company_mentioned(text: str, company_name: str) -> bool:
    """Check whether a single company name (or a variant) appears in text."""
    if not company_name or not isinstance(company_name, str) or not text:
        return False

    name = company_name.strip()
    if not name:
        return False

    # a. full name
    if _bounded_pattern(name).search(text):
        return True

    # b. core name before a corporate suffix
    core_match = _CORPORATE_SUFFIX_PATTERN.match(name)
    if core_match and _word_pattern(core_match.group(1)).search(text):
        return True

    # c. first significant token
    first_token = name.split()[0]
    if len(first_token) >= _MIN_FIRST_TOKEN_LENGTH and _word_pattern(first_token).search(text):
        return True

    return False


def detect_mentions(text: str, brand_name: str, competitors: list[str]) -> list[str]:
    """Return the tracked names referenced in text, brand first, without duplicates."""
    mentioned: list[str] = []
    if not text:
        return mentioned

    for name in [brand_name, *(competitors or [])]:
        if not isinstance(name, str) or not name or name in mentioned:
            continue
        if is_company_mentioned(text, name):
            mentioned.append(name)

    return mentioned


def enhance_citations_with_mentions(
    citations: list[Citation],
    response_text: str,
    brand_name: str,
    competitors: list[str],
) -> list[Citation]:
    """Fill in mentioned_companies for citations that have none.

    Uses the citation's own title + snippet; falls back to the whole response
    text only when the citation carries no content at all.
    """
    enhanced: list[Citation] = []
    for citation in citations:
        if citation.mentioned_companies:
            enhanced.append(citation)
            continue

        content = " ".join(part for part in (citation.title, citation.snippet) if part)
        if content:
            mentioned = detect_mentions(content, brand_name, competitors)
        else:
            mentioned = detect_mentions(response_text, brand_name, competitors)

        enhanced.append(replace(citation, mentioned_companies=mentioned))

    return enhanced
