"""Matching of required property entities against names read from a certificate.

A certificate holder block often lists several parties at once
("ABC Management, Alturas Stanford LLC, 123 Main St"), so besides exact and
normalized equality a required name also matches when it is contained in
the extracted text or when all its significant words appear there.
"""

import re
from typing import Optional, Sequence

from rapidfuzz import fuzz

from coi_compliance.core.config import settings
from coi_compliance.schemas.compliance import (
    EntityResultData,
    ExtractedEntityData,
    PropertyEntityData,
)
from coi_compliance.schemas.enums import EntityMatchStatus

_PUNCTUATION = re.compile(r"[.,;:'\"!?()]")
_WHITESPACE = re.compile(r"\s+")
_LEGAL_SUFFIXES = re.compile(
    r"\b(?:limited liability company|llc|incorporated|inc|corporation|corp"
    r"|limited|company|co|lp)\b"
)


def normalize_entity_name(name: str) -> str:
    """Lower-case, drop punctuation and legal suffixes, collapse whitespace."""
    normalized = _PUNCTUATION.sub("", name.lower())
    normalized = _WHITESPACE.sub(" ", normalized)
    normalized = _LEGAL_SUFFIXES.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def name_match(required: str, actual: str, threshold: Optional[float] = None) -> tuple[bool, bool]:
    """Compare two names.

    Returns:
        (matched, exact): ``exact`` only for a case-insensitive identical match
    """
    if required.strip().lower() == actual.strip().lower():
        return True, True

    required_norm = normalize_entity_name(required)
    actual_norm = normalize_entity_name(actual)
    if not required_norm or not actual_norm:
        return False, False

    if required_norm == actual_norm:
        return True, False

    if required_norm in actual_norm or actual_norm in required_norm:
        return True, False

    significant = [word for word in required_norm.split(" ") if len(word) > 1]
    if len(significant) >= 2 and all(word in actual_norm for word in significant):
        return True, False

    if threshold is None:
        threshold = settings.compliance.entity_match_threshold
    if fuzz.token_set_ratio(required_norm, actual_norm) >= threshold:
        return True, False

    return False, False


def match_entities(
    property_entities: Sequence[PropertyEntityData],
    extracted_entities: Sequence[ExtractedEntityData],
    threshold: Optional[float] = None,
) -> list[EntityResultData]:
    """Produce one result per required property entity.

    Only extracted entities of the same type are candidates. The first exact
    candidate wins, otherwise the last matching candidate is reported as a
    name variation.
    """
    results = []
    for required in property_entities:
        best: Optional[ExtractedEntityData] = None
        best_exact = False
        for candidate in extracted_entities:
            if candidate.entity_type != required.entity_type:
                continue
            matched, exact = name_match(required.entity_name, candidate.entity_name, threshold)
            if matched:
                best, best_exact = candidate, exact
                if exact:
                    break

        if best is None:
            results.append(
                EntityResultData(
                    property_entity_id=required.id,
                    status=EntityMatchStatus.MISSING,
                )
            )
        else:
            results.append(
                EntityResultData(
                    property_entity_id=required.id,
                    extracted_entity_id=best.id,
                    status=EntityMatchStatus.FOUND,
                    match_details=None
                    if best_exact
                    else f'Matched "{best.entity_name}" (name variation)',
                )
            )
    return results
