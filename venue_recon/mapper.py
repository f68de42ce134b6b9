"""Field mapper — rename vendor fields to canonical fields.

A raw record from a vendor (e.g. Skiddle's ``{"name": ..., "town": ...}``)
is rewritten through that vendor's FieldMap into a canonical record
(``{"venue_name": ..., "venue_city": ...}``). Fields the map does not name
are dropped. Postcodes and phone numbers are normalized on the way through.

Usage:

    mapper = FieldMapper(load_field_maps())
    records, headers = mapper.map_records("skiddle", raw_records)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from .config import FieldMap, FieldMapRegistry
from .errors import ParseError
from .tabular import Record
from .text_utils import normalize_phone, normalize_postal_code

log = logging.getLogger(__name__)

# Canonical venue fields.
ID_FIELD = "id"
NAME_FIELD = "venue_name"
CITY_FIELD = "venue_city"
POSTCODE_FIELD = "venue_pcode"
PHONE_FIELD = "venue_phone"

_NORMALIZERS = {
    POSTCODE_FIELD: normalize_postal_code,
    PHONE_FIELD: normalize_phone,
}


class HeaderSet:
    """Ordered, de-duplicated column names in first-seen order.

    Only ever grows: :meth:`add` appends unseen names and ignores the rest,
    so existing positions never change.
    """

    def __init__(self, initial: Iterable[str] = ()):
        self._names: dict[str, None] = {}
        for name in initial:
            self.add(name)

    def add(self, name: str) -> bool:
        """Register *name*. Returns True if it was new."""
        if name in self._names:
            return False
        self._names[name] = None
        return True

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def to_list(self) -> list[str]:
        return list(self._names)

    def __repr__(self) -> str:
        return f"HeaderSet({self.to_list()!r})"


def _raw_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def map_record(
    raw: Mapping[str, Any], field_map: FieldMap, headers: HeaderSet
) -> Record:
    """Map one raw record to a canonical record.

    Registers every canonical name produced in *headers*. Values are
    coerced to strings (``None`` becomes ``""``).
    """
    if not isinstance(raw, Mapping):
        raise ParseError(
            f"Input record must be an object, got {type(raw).__name__}"
        )
    record: Record = {}
    for raw_name, value in raw.items():
        canonical = field_map.get(raw_name)
        if canonical is None:
            continue
        text = _raw_value(value)
        normalize = _NORMALIZERS.get(canonical)
        if normalize is not None:
            text = normalize(text)
        record[canonical] = text
        headers.add(canonical)
    return record


class FieldMapper:
    """Maps raw vendor records using an injected :class:`FieldMapRegistry`."""

    def __init__(self, registry: FieldMapRegistry):
        self.registry = registry

    def vendors(self) -> tuple[str, ...]:
        return self.registry.vendors()

    def resolve(self, vendor_id: str) -> FieldMap:
        return self.registry.resolve(vendor_id)

    def map_records(
        self,
        vendor_id: str,
        raw_records: Iterable[Mapping[str, Any]],
        seed: Sequence[str] = (),
    ) -> tuple[list[Record], HeaderSet]:
        """Map every raw record for *vendor_id*.

        The field map is resolved before any record is consumed, so an
        unknown vendor fails without touching the input. *seed* pre-fills
        the header order (e.g. with the reference table's columns).
        """
        field_map = self.resolve(vendor_id)
        headers = HeaderSet(seed)
        records = [map_record(raw, field_map, headers) for raw in raw_records]
        log.info(
            "Mapped %d %s record(s) to %d column(s)",
            len(records),
            vendor_id.lower(),
            len(headers),
        )
        return records, headers
