"""Translation of raw model output into typed extraction rows.

``map_extraction`` is total: any input, however malformed, produces an
``ExtractionResult`` and never raises. Unknown coverage types are dropped,
unknown limit types and unparseable amounts or dates become ``None``.
"""

import re
from datetime import date
from typing import Any, Dict, List, Optional

from coi_compliance.schemas.compliance import ExtractedCoverageData, ExtractedEntityData
from coi_compliance.schemas.enums import CoverageType, LimitType, NamedEntityType
from coi_compliance.schemas.extraction import ExtractionResult
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

UNPARSEABLE_MESSAGE = "Could not parse structured data from AI response"

_NON_NUMERIC = re.compile(r"[^\d.\-]")
_TRUE_STRINGS = {"true", "yes", "y", "x", "1"}

# Largest value a BigInteger column holds
MAX_AMOUNT = 2**63 - 1


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _confident(value: Any) -> bool:
    return not (isinstance(value, str) and value.strip().lower() == "low")


def _amount(value: Any) -> Optional[int]:
    """Whole dollars from a number or a string like ``"$1,000,000"``."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if number != number or number in (float("inf"), float("-inf")) or number < 0:
        return None
    amount = int(round(number))
    return amount if amount <= MAX_AMOUNT else None


def _date(value: Any) -> Optional[date]:
    text = _text(value)
    if text is None:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _enum(enum_cls, value: Any):
    text = _text(value)
    if text is None:
        return None
    try:
        return enum_cls(text.lower())
    except ValueError:
        return None


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _map_coverage(raw: Dict[str, Any], additional_insured_names: List[str]) -> List[ExtractedCoverageData]:
    coverage_type = _enum(CoverageType, raw.get("coverage_type"))
    if coverage_type is None:
        LOGGER.warning(
            "Dropping coverage with unknown type",
            extra={"coverage_type": str(raw.get("coverage_type"))[:100]},
        )
        return []

    additional_insured = _flag(raw.get("additional_insured"))
    shared = dict(
        coverage_type=coverage_type,
        carrier_name=_text(raw.get("carrier_name")),
        policy_number=_text(raw.get("policy_number")),
        effective_date=_date(raw.get("effective_date")),
        expiration_date=_date(raw.get("expiration_date")),
        additional_insured_listed=additional_insured,
        additional_insured_entities=list(additional_insured_names) if additional_insured else [],
        waiver_of_subrogation=_flag(raw.get("waiver_of_subrogation")),
        confidence_flag=_confident(raw.get("confidence")),
        raw_extracted_text=_text(raw.get("raw_text")),
    )

    limits = [_dict(limit) for limit in _list(raw.get("limits"))]
    if not limits:
        return [ExtractedCoverageData(**shared)]

    # One row per limit, e.g. GL per occurrence and GL aggregate
    return [
        ExtractedCoverageData(
            limit_type=_enum(LimitType, limit.get("type")),
            limit_amount=_amount(limit.get("amount")),
            **shared,
        )
        for limit in limits
    ]


def _map_entity(raw: Any, entity_type: NamedEntityType) -> Optional[ExtractedEntityData]:
    raw = _dict(raw)
    name = _text(raw.get("name"))
    if name is None:
        return None
    return ExtractedEntityData(
        entity_name=name,
        entity_address=_text(raw.get("address")),
        entity_type=entity_type,
        confidence_flag=_confident(raw.get("confidence")),
    )


def map_extraction(raw: Any) -> ExtractionResult:
    """Map a parsed model reply to an ``ExtractionResult``.

    Args:
        raw: Parsed JSON (any type)

    Returns:
        ExtractionResult: ``success=False`` only when ``raw`` is not an object
    """
    if not isinstance(raw, dict):
        return ExtractionResult.failure(UNPARSEABLE_MESSAGE)

    additional_insured = [
        entity
        for entity in (
            _map_entity(item, NamedEntityType.ADDITIONAL_INSURED)
            for item in _list(raw.get("additional_insured_entities"))
        )
        if entity is not None
    ]
    additional_insured_names = [entity.entity_name for entity in additional_insured]

    coverages: List[ExtractedCoverageData] = []
    for item in _list(raw.get("coverages")):
        if isinstance(item, dict):
            coverages.extend(_map_coverage(item, additional_insured_names))

    entities: List[ExtractedEntityData] = []
    holder = _map_entity(raw.get("certificate_holder"), NamedEntityType.CERTIFICATE_HOLDER)
    if holder is not None:
        entities.append(holder)
    entities.extend(additional_insured)

    return ExtractionResult(
        success=True,
        coverages=coverages,
        entities=entities,
        insured_name=_text(raw.get("insured_name")),
    )
