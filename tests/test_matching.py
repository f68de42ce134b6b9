import pytest

from tests.conftest import _reference_records
from venue_recon.matching import (
    MATCH_COLUMNS,
    ReferenceSet,
    annotate,
    match_candidate,
    match_city,
    match_name,
    match_phone,
    match_postcode,
    phone_suffix,
)


@pytest.fixture
def reference():
    return ReferenceSet.from_records(_reference_records())


def _ids(records):
    return [r["id"] for r in records]


PHASE_ONE_CANONICAL = {
    "venue_name": "The Phase One Club",
    "venue_city": "Liverpool",
    "venue_pcode": "L14BE",
    "venue_phone": "0151 363 1292",
}


class TestStages:
    """Each stage on its own, against the full reference set."""

    def test_name_any_keyword(self, reference):
        kept = match_name({"venue_name": "The Phase One Club"}, reference.records)
        # "club" also hits "The Cavern Club"
        assert _ids(kept) == ["115852", "115853"]

    def test_name_ignores_case_and_symbols(self, reference):
        kept = match_name({"venue_name": "PHILHARMONIC!!"}, reference.records)
        assert _ids(kept) == ["115854"]

    def test_name_stop_words_never_match(self, reference):
        """'The' alone must not pull in 'The Cavern Club'."""
        assert match_name({"venue_name": "The"}, reference.records) == []
        assert match_name({"venue_name": "The & And"}, reference.records) == []

    def test_name_whole_words_only(self, reference):
        assert match_name({"venue_name": "Cave"}, reference.records) == []

    def test_name_kept_once(self, reference):
        kept = match_name({"venue_name": "Cavern Club Cavern"}, reference.records)
        assert _ids(kept) == ["115853", "115855"]

    def test_name_missing(self, reference):
        assert match_name({}, reference.records) == []

    def test_city_substring(self, reference):
        kept = match_city({"venue_city": "Manchester"}, reference.records)
        assert _ids(kept) == ["115855"]

    def test_city_any_keyword(self, reference):
        kept = match_city({"venue_city": "Liverpool City Centre"}, reference.records)
        assert _ids(kept) == ["115852", "115853", "115854"]

    def test_city_missing(self, reference):
        assert match_city({"venue_city": ""}, reference.records) == []

    def test_postcode_case_insensitive(self, reference):
        kept = match_postcode({"venue_pcode": "l14be"}, reference.records)
        assert _ids(kept) == ["115852"]

    def test_postcode_exact_equality(self):
        """Whitespace is significant: the mapper has already stripped the candidate."""
        records = [{"id": "1", "venue_pcode": "L1 4BE"}]
        assert match_postcode({"venue_pcode": "L14BE"}, records) == []
        assert match_postcode({"venue_pcode": "l1 4be"}, records) == records

    def test_postcode_empty_never_matches(self):
        records = [{"id": "1", "venue_pcode": ""}]
        assert match_postcode({"venue_pcode": ""}, records) == []

    def test_phone_last_seven(self, reference):
        kept = match_phone({"venue_phone": "+44 151 363 1292"}, reference.records)
        assert _ids(kept) == ["115852"]

    def test_phone_shared_suffix(self, reference):
        """0151 236 1965 and 0161 236 1965 share their last 7 digits."""
        kept = match_phone({"venue_phone": "2361965"}, reference.records)
        assert _ids(kept) == ["115853", "115855"]

    def test_phone_too_short(self):
        records = [{"id": "1", "venue_phone": "12345"}]
        assert match_phone({"venue_phone": "12345"}, records) == []

    def test_phone_suffix(self):
        assert phone_suffix("0151 363 1292") == "3631292"
        assert phone_suffix("123 456") == ""
        assert phone_suffix(None) == ""


class TestFunnel:
    """Tests for match_candidate: the four stages chained."""

    def test_all_four_stages(self, reference):
        outcome = match_candidate(PHASE_ONE_CANONICAL, reference)
        assert outcome.matched_fields_num == 4
        assert outcome.has_match
        assert outcome.stage("name").matched_ids == ("115852", "115853")
        assert outcome.stage("city").matched_ids == ("115852", "115853")
        assert outcome.stage("postcode").matched_ids == ("115852",)
        assert outcome.stage("phone").matched_ids == ("115852",)

    def test_name_only(self, reference):
        outcome = match_candidate(
            {"venue_name": "Cavern Lounge", "venue_city": "Leeds"}, reference
        )
        assert outcome.matched_fields_num == 1
        assert outcome.stage("name").matched_ids == ("115853", "115855")
        assert outcome.stage("city").matched_ids == ()

    def test_no_match(self, reference):
        outcome = match_candidate(
            {"venue_name": "Zanzibar", "venue_city": "Liverpool"}, reference
        )
        assert outcome.matched_fields_num == 0
        assert not outcome.has_match

    def test_eliminated_records_never_return(self, reference):
        """Same postcode and phone as Philharmonic Hall, but a different name."""
        outcome = match_candidate(
            {
                "venue_name": "Zanzibar",
                "venue_city": "Liverpool",
                "venue_pcode": "L19BP",
                "venue_phone": "01517093789",
            },
            reference,
        )
        assert outcome.matched_fields_num == 0

    @pytest.mark.parametrize(
        "candidate",
        [
            PHASE_ONE_CANONICAL,
            {"venue_name": "Cavern", "venue_city": "Liverpool", "venue_phone": "2361965"},
            {"venue_name": "Cavern Club", "venue_city": "Manchester", "venue_pcode": "M1 1AA"},
            {"venue_name": "Hall", "venue_city": "pool"},
            {},
        ],
    )
    def test_containment(self, reference, candidate):
        outcome = match_candidate(candidate, reference)
        previous = set(map(id, reference.records))
        for stage in outcome.stages:
            current = set(map(id, stage.survivors))
            assert current <= previous
            previous = current

    def test_reference_not_mutated(self, reference):
        before = [dict(r) for r in reference]
        match_candidate(PHASE_ONE_CANONICAL, reference)
        assert [dict(r) for r in reference] == before

    def test_reference_records_read_only(self, reference):
        with pytest.raises(TypeError):
            reference.records[0]["venue_name"] = "changed"

    def test_empty_reference(self):
        outcome = match_candidate(PHASE_ONE_CANONICAL, ReferenceSet())
        assert outcome.matched_fields_num == 0

    def test_unknown_stage(self, reference):
        with pytest.raises(KeyError):
            match_candidate({}, reference).stage("email")


class TestAnnotate:
    def test_match_columns(self, reference):
        outcome = match_candidate(PHASE_ONE_CANONICAL, reference)
        record = annotate(PHASE_ONE_CANONICAL, outcome)
        assert record["matched_venue_name"] == "115852,115853"
        assert record["matched_venue_city"] == "115852,115853"
        assert record["matched_venue_postcode"] == "115852"
        assert record["matched_venue_phone"] == "115852"
        assert list(record)[-4:] == list(MATCH_COLUMNS)

    def test_no_match_columns_empty(self, reference):
        outcome = match_candidate({"venue_name": "Zanzibar"}, reference)
        record = annotate({"venue_name": "Zanzibar"}, outcome)
        assert all(record[c] == "" for c in MATCH_COLUMNS)

    def test_candidate_not_mutated(self, reference):
        candidate = dict(PHASE_ONE_CANONICAL)
        annotate(candidate, match_candidate(candidate, reference))
        assert candidate == PHASE_ONE_CANONICAL
