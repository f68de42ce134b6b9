"""Matching funnel — narrow a reference set down to likely duplicates.

A candidate venue is compared against the reference set in four stages:

1. **name** — any name keyword equals a word of the reference name
2. **city** — the reference city contains any candidate city keyword
3. **postcode** — postcodes are equal, ignoring case
4. **phone** — the last 7 characters of the phone numbers are equal

Each stage only sees the records that survived the stage before it, so the
surviving sets shrink monotonically (phone ⊆ postcode ⊆ city ⊆ name). The
number of stages that kept at least one record is the candidate's
``matched_fields_num``.

No stage raises on odd input: missing or malformed values simply match
nothing.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from .mapper import CITY_FIELD, ID_FIELD, NAME_FIELD, PHONE_FIELD, POSTCODE_FIELD
from .tabular import Record
from .text_utils import (
    city_keywords,
    name_keywords,
    normalize_city,
    remove_all_symbols,
    remove_whitespace,
)

PHONE_SUFFIX_LEN = 7

ReferenceRecord = Mapping[str, str]
StageFn = Callable[[Mapping[str, str], Sequence[ReferenceRecord]], list[ReferenceRecord]]


@dataclass(frozen=True)
class ReferenceSet:
    """Read-only collection of canonical reference records.

    Records are stored as read-only mappings so matching cannot change
    them.
    """

    records: tuple[ReferenceRecord, ...] = ()

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, str]]) -> "ReferenceSet":
        return cls(records=tuple(MappingProxyType(dict(r)) for r in records))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ReferenceRecord]:
        return iter(self.records)


def _record_id(record: ReferenceRecord) -> str:
    value = record.get(ID_FIELD)
    return "" if value is None else str(value)


def match_name(
    candidate: Mapping[str, str], records: Sequence[ReferenceRecord]
) -> list[ReferenceRecord]:
    keywords = set(name_keywords(candidate.get(NAME_FIELD)))
    if not keywords:
        return []
    kept = []
    for record in records:
        tokens = remove_all_symbols(record.get(NAME_FIELD)).lower().split()
        if any(token in keywords for token in tokens):
            kept.append(record)
    return kept


def match_city(
    candidate: Mapping[str, str], records: Sequence[ReferenceRecord]
) -> list[ReferenceRecord]:
    keywords = city_keywords(candidate.get(CITY_FIELD))
    if not keywords:
        return []
    kept = []
    for record in records:
        city = normalize_city(record.get(CITY_FIELD))
        if any(keyword in city for keyword in keywords):
            kept.append(record)
    return kept


def _postcode_key(value: str | None) -> str:
    return (value or "").upper()


def match_postcode(
    candidate: Mapping[str, str], records: Sequence[ReferenceRecord]
) -> list[ReferenceRecord]:
    target = _postcode_key(candidate.get(POSTCODE_FIELD))
    if not target:
        return []
    return [r for r in records if _postcode_key(r.get(POSTCODE_FIELD)) == target]


def phone_suffix(value: str | None) -> str:
    """Last 7 characters of a whitespace-stripped phone, or "" if shorter."""
    phone = remove_whitespace(value)
    if len(phone) < PHONE_SUFFIX_LEN:
        return ""
    return phone[-PHONE_SUFFIX_LEN:]


def match_phone(
    candidate: Mapping[str, str], records: Sequence[ReferenceRecord]
) -> list[ReferenceRecord]:
    target = phone_suffix(candidate.get(PHONE_FIELD))
    if not target:
        return []
    return [r for r in records if phone_suffix(r.get(PHONE_FIELD)) == target]


# (stage name, output column, stage function), in funnel order.
STAGES: tuple[tuple[str, str, StageFn], ...] = (
    ("name", "matched_venue_name", match_name),
    ("city", "matched_venue_city", match_city),
    ("postcode", "matched_venue_postcode", match_postcode),
    ("phone", "matched_venue_phone", match_phone),
)

MATCH_COLUMNS: tuple[str, ...] = tuple(column for _, column, _ in STAGES)


@dataclass(frozen=True)
class StageResult:
    name: str
    column: str
    survivors: tuple[ReferenceRecord, ...]

    @property
    def matched_ids(self) -> tuple[str, ...]:
        return tuple(_record_id(r) for r in self.survivors)


@dataclass(frozen=True)
class MatchOutcome:
    """Per-stage survivors for one candidate."""

    stages: tuple[StageResult, ...]

    @property
    def matched_fields_num(self) -> int:
        return sum(1 for s in self.stages if s.survivors)

    @property
    def has_match(self) -> bool:
        return self.matched_fields_num > 0

    def stage(self, name: str) -> StageResult:
        for s in self.stages:
            if s.name == name:
                return s
        raise KeyError(name)

    def annotations(self) -> dict[str, str]:
        """Match columns: comma-joined reference ids per stage."""
        return {s.column: ",".join(s.matched_ids) for s in self.stages}


def match_candidate(candidate: Mapping[str, str], reference: ReferenceSet) -> MatchOutcome:
    """Run *candidate* through every stage of the funnel."""
    working: Sequence[ReferenceRecord] = reference.records
    results = []
    for name, column, stage_fn in STAGES:
        working = tuple(stage_fn(candidate, working))
        results.append(StageResult(name=name, column=column, survivors=working))
    return MatchOutcome(stages=tuple(results))


def annotate(candidate: Mapping[str, str], outcome: MatchOutcome) -> Record:
    """Return a copy of *candidate* with the match columns added."""
    return {**candidate, **outcome.annotations()}
