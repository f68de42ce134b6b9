"""Venue reconciliation — field mapping and record matching."""

from .config import FieldMapRegistry, Settings, load_field_maps
from .errors import (
    ConfigError,
    EmptyPayloadError,
    EncodeError,
    ParseError,
    ReconError,
    UnknownVendorError,
)
from .mapper import FieldMapper, HeaderSet, map_record
from .matching import MatchOutcome, ReferenceSet, match_candidate
from .reconcile import (
    ReconcilePayload,
    ReconcileResult,
    ReconcileRun,
    ReconcileState,
    Reconciler,
)
from .reference import FileReferenceStore, InlineReference
from .tabular import decode, encode
from .text_utils import normalize_phone, normalize_postal_code

__all__ = [
    # Configuration
    "Settings",
    "FieldMapRegistry",
    "load_field_maps",
    # Errors
    "ReconError",
    "EmptyPayloadError",
    "UnknownVendorError",
    "ParseError",
    "EncodeError",
    "ConfigError",
    # Tabular codec
    "decode",
    "encode",
    # Field mapping
    "FieldMapper",
    "HeaderSet",
    "map_record",
    "normalize_phone",
    "normalize_postal_code",
    # Matching
    "ReferenceSet",
    "MatchOutcome",
    "match_candidate",
    # Orchestration
    "Reconciler",
    "ReconcileRun",
    "ReconcileState",
    "ReconcilePayload",
    "ReconcileResult",
    # Reference tables
    "InlineReference",
    "FileReferenceStore",
]
