"""Query term expansion helpers.

An attribute-task may query the same source with several search terms.  Names
are split into plausible first/last combinations, locations are scoped to the
social platforms people usually mention them on and phone numbers are reduced
to their digits.  Other attributes are searched verbatim.
"""

from __future__ import annotations

import re
from typing import Iterable, List

from uio9.core.data_models import Attribute

LOCATION_SITES = ("facebook.com", "twitter.com", "instagram.com")


def _unique(terms: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for term in terms:
        if term and term not in seen:
            seen.add(term)
            ordered.append(term)
    return ordered


def generate_name_terms(name: str) -> List[str]:
    """Generate search terms for a full or partial name.

    For ``"Ada King Lovelace"`` this yields the full name, ``"Ada Lovelace"``,
    ``"Ada"``, ``"Lovelace"`` and the quoted full name.
    """
    name = " ".join(name.split())
    if not name:
        return []
    terms = [name]
    parts = name.split(" ")
    if len(parts) > 1:
        terms.append(f"{parts[0]} {parts[-1]}")
        terms.append(parts[0])
        terms.append(parts[-1])
    terms.append(f'"{name}"')
    return _unique(terms)


def generate_location_terms(location: str) -> List[str]:
    """Generate platform-scoped search terms for a location."""
    location = " ".join(location.split())
    if not location:
        return []
    terms = [f'"{location}" site:{site}' for site in LOCATION_SITES]
    terms.append(f"{location} people OR profiles")
    return terms


def normalize_phone(phone: str) -> str:
    """Strip everything except digits from a phone number."""
    return re.sub(r"[^0-9]", "", phone)


def expand(attribute: Attribute, value) -> List:
    """Return the search terms an attribute-task should query.

    Parameters
    ----------
    attribute: Attribute
        Attribute the value belongs to.
    value: str or bytes
        The query value.  Image payloads are passed through unchanged.
    """
    if attribute is Attribute.NAME:
        return generate_name_terms(value)
    if attribute is Attribute.LOCATION:
        return generate_location_terms(value)
    if attribute is Attribute.PHONE:
        digits = normalize_phone(value)
        return [digits] if digits else []
    if attribute is Attribute.IMAGE:
        return [value] if value else []
    value = value.strip()
    return [value] if value else []
