"""Reconciliation orchestrator — map, match, partition, encode.

One request runs as a single pipeline:

    AWAIT_PAYLOAD -> DECODING_REFERENCE -> DECODING_CANDIDATES -> MAPPING
        -> MATCHING -> PARTITIONING -> ENCODING -> RESPONDED

Any error moves the run to FAILED and is re-raised unchanged; a result is
only returned once both partitions are encoded.

Usage:

    reconciler = Reconciler(FieldMapper(load_field_maps()))
    result = reconciler.reconcile(
        "skiddle", payload["inputRecords"], InlineReference(payload["latestCsv"])
    )
    result.to_dict()
    # {"zeroMatchCsv": ..., "zeroMatchCount": 3, "hasMatchCsv": ..., "hasMatchCount": 2}
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from .errors import EmptyPayloadError, ParseError
from .mapper import FieldMapper
from .matching import MATCH_COLUMNS, MatchOutcome, ReferenceSet, annotate, match_candidate
from .reference import InlineReference, ReferenceProvider
from .tabular import Record, decode, encode, header_of

log = logging.getLogger(__name__)


class ReconcileState(enum.Enum):
    AWAIT_PAYLOAD = "await_payload"
    DECODING_REFERENCE = "decoding_reference"
    DECODING_CANDIDATES = "decoding_candidates"
    MAPPING = "mapping"
    MATCHING = "matching"
    PARTITIONING = "partitioning"
    ENCODING = "encoding"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconcilePayload:
    """Request body: raw vendor records plus the reference table text."""

    input_records: list[Any] = field(default_factory=list)
    latest_csv: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "ReconcilePayload":
        if not isinstance(data, Mapping):
            raise ParseError(
                f"Payload must be a JSON object, got {type(data).__name__}"
            )
        records = data.get("inputRecords")
        latest_csv = data.get("latestCsv")
        if records is None:
            records = []
        if latest_csv is None:
            latest_csv = ""
        if not isinstance(records, list):
            raise ParseError("'inputRecords' must be a list of objects")
        if not isinstance(latest_csv, str):
            raise ParseError("'latestCsv' must be a string")
        return cls(input_records=records, latest_csv=latest_csv)


@dataclass(frozen=True)
class ReconcileResult:
    zero_match_csv: str
    zero_match_count: int
    has_match_csv: str
    has_match_count: int
    columns: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "zeroMatchCsv": self.zero_match_csv,
            "zeroMatchCount": self.zero_match_count,
            "hasMatchCsv": self.has_match_csv,
            "hasMatchCount": self.has_match_count,
        }


def _load_reference(reference: ReferenceProvider) -> str:
    try:
        text = reference.load()
    except FileNotFoundError as e:
        raise EmptyPayloadError(str(e)) from e
    if not text or not text.strip():
        raise EmptyPayloadError("No reference table provided")
    return text


def _require_records(input_records: Sequence[Any] | None) -> list[Any]:
    if input_records is None:
        raise EmptyPayloadError("No input records provided")
    if isinstance(input_records, (str, bytes, Mapping)):
        raise ParseError("Input records must be a list of objects")
    records = list(input_records)
    if not records:
        raise EmptyPayloadError("No input records provided")
    return records


class ReconcileRun:
    """State for a single reconciliation request.

    Not reusable: build one per request (``Reconciler.reconcile`` does).
    """

    def __init__(
        self,
        mapper: FieldMapper,
        vendor_id: str,
        input_records: Sequence[Any] | None,
        reference: ReferenceProvider,
        max_workers: int = 1,
    ):
        self.mapper = mapper
        self.vendor_id = vendor_id
        self.input_records = input_records
        self.reference = reference
        self.max_workers = max_workers
        self.state = ReconcileState.AWAIT_PAYLOAD
        self.history: list[ReconcileState] = [self.state]

    def _enter(self, state: ReconcileState) -> None:
        log.debug("[%s] %s -> %s", self.vendor_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def execute(self) -> ReconcileResult:
        if self.state is not ReconcileState.AWAIT_PAYLOAD:
            raise RuntimeError("ReconcileRun already executed")
        start = time.monotonic()
        try:
            result = self._execute()
        except Exception as e:
            failed_in = self.state
            self._enter(ReconcileState.FAILED)
            log.warning(
                "[%s] Reconciliation failed during %s: %s",
                self.vendor_id,
                failed_in.value,
                e,
            )
            raise
        log.info(
            "[%s] Reconciled %d candidate(s): %d with match, %d without (%.2fs)",
            self.vendor_id,
            result.has_match_count + result.zero_match_count,
            result.has_match_count,
            result.zero_match_count,
            time.monotonic() - start,
        )
        return result

    def _execute(self) -> ReconcileResult:
        # Fail fast on vendor and empty input before parsing anything.
        self.mapper.resolve(self.vendor_id)
        reference_text = _load_reference(self.reference)
        raw_records = _require_records(self.input_records)

        self._enter(ReconcileState.DECODING_REFERENCE)
        reference = ReferenceSet.from_records(decode(reference_text))
        log.info("[%s] Reference table: %d record(s)", self.vendor_id, len(reference))

        self._enter(ReconcileState.DECODING_CANDIDATES)
        for i, raw in enumerate(raw_records):
            if not isinstance(raw, Mapping):
                raise ParseError(
                    f"Input record {i} must be an object, got {type(raw).__name__}"
                )

        self._enter(ReconcileState.MAPPING)
        candidates, headers = self.mapper.map_records(self.vendor_id, raw_records)

        self._enter(ReconcileState.MATCHING)
        outcomes = self._match_all(candidates, reference)

        self._enter(ReconcileState.PARTITIONING)
        has_match: list[Record] = []
        zero_match: list[Record] = []
        for candidate, outcome in zip(candidates, outcomes):
            target = has_match if outcome.has_match else zero_match
            target.append(annotate(candidate, outcome))

        self._enter(ReconcileState.ENCODING)
        columns = headers.to_list()
        columns += [c for c in MATCH_COLUMNS if c not in headers]
        zero_match_csv = encode(zero_match, columns)
        has_match_csv = encode(has_match, columns)

        self._enter(ReconcileState.RESPONDED)
        return ReconcileResult(
            zero_match_csv=zero_match_csv,
            zero_match_count=len(zero_match),
            has_match_csv=has_match_csv,
            has_match_count=len(has_match),
            columns=tuple(columns),
        )

    def _match_all(
        self, candidates: list[Record], reference: ReferenceSet
    ) -> list[MatchOutcome]:
        """Match every candidate, keeping candidate order.

        With ``max_workers > 1`` candidates are spread over a thread pool;
        ``Executor.map`` yields in input order and re-raises the first
        failure.
        """
        if self.max_workers <= 1 or len(candidates) < 2:
            return [match_candidate(c, reference) for c in candidates]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(partial(match_candidate, reference=reference), candidates))


class Reconciler:
    """Entry point holding the long-lived pieces (field mapper, worker count)."""

    def __init__(self, mapper: FieldMapper, *, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.mapper = mapper
        self.max_workers = max_workers

    def reconcile(
        self,
        vendor_id: str,
        input_records: Sequence[Any] | None,
        reference: ReferenceProvider,
    ) -> ReconcileResult:
        run = ReconcileRun(
            self.mapper,
            vendor_id,
            input_records,
            reference,
            max_workers=self.max_workers,
        )
        return run.execute()

    def reconcile_payload(
        self,
        vendor_id: str,
        payload: ReconcilePayload,
        fallback: ReferenceProvider | None = None,
    ) -> ReconcileResult:
        """Reconcile a request body, using *fallback* when it has no table."""
        reference: ReferenceProvider = InlineReference(payload.latest_csv)
        if not payload.latest_csv.strip() and fallback is not None:
            reference = fallback
        return self.reconcile(vendor_id, payload.input_records, reference)

    def map_only(
        self,
        vendor_id: str,
        input_records: Sequence[Any] | None,
        reference: ReferenceProvider | None = None,
    ) -> str:
        """Map raw records and return them as CSV without matching.

        When *reference* is given its header seeds the column order, so the
        mapped table lines up with the reference table's columns.
        """
        self.mapper.resolve(vendor_id)
        raw_records = _require_records(input_records)
        seed: list[str] = []
        if reference is not None:
            seed = header_of(_load_reference(reference))
        records, headers = self.mapper.map_records(vendor_id, raw_records, seed=seed)
        return encode(records, headers.to_list())
