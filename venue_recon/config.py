"""Runtime configuration and vendor field-map loading.

Settings come from the process environment (populated from a ``.env`` by
the CLI and web entry points via python-dotenv). Field maps are JSON files,
one per vendor, named ``<vendor>.json`` and holding a flat object of
``raw_field -> canonical_field``. They are loaded and validated once at
startup into an immutable :class:`FieldMapRegistry`.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from .errors import ConfigError, UnknownVendorError

log = logging.getLogger(__name__)

REFERENCE_CSV_ENV = "VENUE_RECON_REFERENCE_CSV"
FIELDMAP_DIR_ENV = "VENUE_RECON_FIELDMAP_DIR"
MAX_WORKERS_ENV = "VENUE_RECON_MAX_WORKERS"
LOG_LEVEL_ENV = "VENUE_RECON_LOG_LEVEL"
APP_ENV_ENV = "APP_ENV"
ORIGIN_URL_DEV_ENV = "ORIGIN_URL_DEV"
ORIGIN_URL_PROD_ENV = "ORIGIN_URL_PROD"

DEFAULT_FIELDMAP_DIR = Path(__file__).parent / "fieldmaps"
DEFAULT_MAX_WORKERS = 1
DEFAULT_LOG_LEVEL = "INFO"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

FieldMap = Mapping[str, str]


@dataclass(frozen=True)
class Settings:
    """Process-wide settings read from the environment."""

    reference_csv: Path | None = None
    fieldmap_dir: Path | None = None
    max_workers: int = DEFAULT_MAX_WORKERS
    log_level: str = DEFAULT_LOG_LEVEL
    app_env: str = "development"
    origin_url_dev: str | None = None
    origin_url_prod: str | None = None

    @property
    def cors_origin(self) -> str | None:
        """Allowed CORS origin for the current ``APP_ENV``."""
        if self.app_env == "production":
            return self.origin_url_prod
        return self.origin_url_dev

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            value = (env.get(name) or "").strip()
            return value or None

        raw_workers = _get(MAX_WORKERS_ENV)
        max_workers = DEFAULT_MAX_WORKERS
        if raw_workers is not None:
            try:
                max_workers = int(raw_workers)
            except ValueError:
                raise ConfigError(
                    f"{MAX_WORKERS_ENV} must be an integer, got {raw_workers!r}"
                ) from None
            if max_workers < 1:
                raise ConfigError(f"{MAX_WORKERS_ENV} must be >= 1")

        log_level = (_get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigError(f"{LOG_LEVEL_ENV} must be one of {sorted(_LOG_LEVELS)}")

        reference_csv = _get(REFERENCE_CSV_ENV)
        fieldmap_dir = _get(FIELDMAP_DIR_ENV)
        return cls(
            reference_csv=Path(reference_csv) if reference_csv else None,
            fieldmap_dir=Path(fieldmap_dir) if fieldmap_dir else None,
            max_workers=max_workers,
            log_level=log_level,
            app_env=(_get(APP_ENV_ENV) or "development").lower(),
            origin_url_dev=_get(ORIGIN_URL_DEV_ENV),
            origin_url_prod=_get(ORIGIN_URL_PROD_ENV),
        )


@dataclass(frozen=True)
class FieldMapRegistry:
    """Immutable vendor id -> FieldMap lookup.

    Vendor ids are stored lower-cased and resolved case-insensitively.
    Build with :meth:`from_mapping` or :func:`load_field_maps`, which
    validate every map; the constructor does not.
    """

    maps: Mapping[str, FieldMap] = field(default_factory=dict)

    def vendors(self) -> tuple[str, ...]:
        return tuple(sorted(self.maps))

    def resolve(self, vendor_id: str) -> FieldMap:
        key = (vendor_id or "").strip().lower()
        try:
            return self.maps[key]
        except KeyError:
            raise UnknownVendorError(vendor_id, self.vendors()) from None

    @classmethod
    def from_mapping(
        cls, raw: Mapping[str, Mapping[str, str]]
    ) -> "FieldMapRegistry":
        maps: dict[str, FieldMap] = {}
        for vendor_id, field_map in raw.items():
            key = (vendor_id or "").strip().lower()
            if not key:
                raise ConfigError("Field map vendor id must be non-empty")
            if key in maps:
                raise ConfigError(f"Duplicate field map for vendor {key!r}")
            maps[key] = _validate_field_map(key, field_map)
        return cls(maps=MappingProxyType(maps))


def _validate_field_map(vendor_id: str, field_map: object) -> FieldMap:
    if not isinstance(field_map, Mapping) or not field_map:
        raise ConfigError(
            f"Field map for {vendor_id!r} must be a non-empty object "
            "of raw_field -> canonical_field"
        )
    targets: dict[str, str] = {}
    for raw_name, canonical in field_map.items():
        if not isinstance(raw_name, str) or not raw_name:
            raise ConfigError(f"{vendor_id}: raw field names must be non-empty strings")
        if not isinstance(canonical, str) or not canonical.strip():
            raise ConfigError(
                f"{vendor_id}: raw field {raw_name!r} must map to a non-empty string"
            )
        if canonical in targets:
            raise ConfigError(
                f"{vendor_id}: raw fields {targets[canonical]!r} and {raw_name!r} "
                f"both map to {canonical!r}"
            )
        targets[canonical] = raw_name
    return MappingProxyType({k: v.strip() for k, v in field_map.items()})


def load_field_maps(directory: Path | None = None) -> FieldMapRegistry:
    """Load every ``<vendor>.json`` in *directory* into a registry.

    Defaults to the field maps bundled with the package.
    """
    directory = Path(directory) if directory is not None else DEFAULT_FIELDMAP_DIR
    if not directory.is_dir():
        raise ConfigError(f"Field map directory not found: {directory}")

    raw: dict[str, object] = {}
    for path in sorted(directory.glob("*.json")):
        try:
            raw[path.stem] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to load field map {path.name}: {e}") from e

    if not raw:
        raise ConfigError(f"No field maps (*.json) in {directory}")
    registry = FieldMapRegistry.from_mapping(raw)
    log.debug("Loaded field maps for: %s", ", ".join(registry.vendors()))
    return registry
