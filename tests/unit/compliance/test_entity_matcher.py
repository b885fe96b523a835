from uuid import uuid4

from coi_compliance.schemas.compliance import ExtractedEntityData, PropertyEntityData
from coi_compliance.schemas.enums import EntityMatchStatus, NamedEntityType
from coi_compliance.services.compliance.entity_matcher import (
    match_entities,
    name_match,
    normalize_entity_name,
)

HOLDER = NamedEntityType.CERTIFICATE_HOLDER
AI = NamedEntityType.ADDITIONAL_INSURED


def required(name, entity_type=HOLDER):
    return PropertyEntityData(id=uuid4(), entity_name=name, entity_type=entity_type)


def extracted(name, entity_type=HOLDER):
    return ExtractedEntityData(id=uuid4(), entity_name=name, entity_type=entity_type)


class TestNameMatch:
    def test_normalization(self):
        assert normalize_entity_name("ABC Management, LLC.") == "abc management"
        assert normalize_entity_name("  Alturas   Stanford Inc ") == "alturas stanford"

    def test_exact_ignores_case(self):
        assert name_match("Alturas Stanford LLC", "ALTURAS STANFORD LLC") == (True, True)

    def test_legal_suffix_variation(self):
        assert name_match("Alturas Stanford LLC", "Alturas Stanford, Inc.") == (True, False)

    def test_contained_in_holder_block(self):
        block = "ABC Management, Alturas Stanford LLC, 123 Main St"
        assert name_match("ABC Management", block) == (True, False)

    def test_all_significant_words_present(self):
        assert name_match(
            "Stanford Alturas Properties", "Alturas Holdings Stanford Properties Group"
        ) == (True, False)

    def test_fuzzy_typo(self):
        assert name_match(
            "Greenfield Property Management", "Greenfield Property Managment", threshold=90
        ) == (True, False)

    def test_unrelated_names(self):
        assert name_match("Acme Plumbing", "Zenith Roofing", threshold=90) == (False, False)

    def test_names_that_normalize_to_nothing(self):
        assert name_match("LLC", "Inc") == (False, False)


class TestMatchEntities:
    def test_exact_match_has_no_details(self):
        req = required("Alturas Stanford LLC")
        found = extracted("Alturas Stanford LLC")

        [result] = match_entities([req], [found])

        assert result.status == EntityMatchStatus.FOUND
        assert result.extracted_entity_id == found.id
        assert result.property_entity_id == req.id
        assert result.match_details is None

    def test_variation_is_reported(self):
        found = extracted("Alturas Stanford, Inc.")

        [result] = match_entities([required("Alturas Stanford LLC")], [found])

        assert result.status == EntityMatchStatus.FOUND
        assert result.match_details == 'Matched "Alturas Stanford, Inc." (name variation)'

    def test_exact_candidate_beats_earlier_variation(self):
        variation = extracted("Alturas Stanford, Inc.")
        exact = extracted("alturas stanford llc")

        [result] = match_entities([required("Alturas Stanford LLC")], [variation, exact])

        assert result.extracted_entity_id == exact.id
        assert result.match_details is None

    def test_entity_type_must_agree(self):
        [result] = match_entities(
            [required("Alturas Stanford LLC", AI)], [extracted("Alturas Stanford LLC", HOLDER)]
        )

        assert result.status == EntityMatchStatus.MISSING
        assert result.extracted_entity_id is None

    def test_one_result_per_required_entity(self):
        results = match_entities(
            [required("Alturas Stanford LLC"), required("ABC Management", AI)],
            [extracted("Alturas Stanford LLC")],
        )

        assert [r.status for r in results] == [EntityMatchStatus.FOUND, EntityMatchStatus.MISSING]

    def test_no_required_entities(self):
        assert match_entities([], [extracted("Anyone")]) == []
