"""Shared fixtures and sample data for the venue-recon test suite."""

import pytest

from venue_recon.config import load_field_maps
from venue_recon.mapper import FieldMapper
from venue_recon.reconcile import Reconciler

REFERENCE_CSV = (
    "id,venue_name,venue_address,venue_city,venue_pcode,venue_phone\n"
    "115852,Phase One Jacaranda,21-23 Slater Street,Liverpool,L14BE,01513631292\n"
    "115853,The Cavern Club,10 Mathew Street,Liverpool,L26RE,01512361965\n"
    "115854,Philharmonic Hall,Hope Street,Liverpool,L19BP,01517093789\n"
    "115855,Cavern Pub,5 Mathew Street,Greater Manchester,M11AA,01612361965\n"
)

# Skiddle-shaped raw venue records.
PHASE_ONE = {
    "id": 1001,
    "name": "The Phase One Club",
    "address": "21-23 Slater Street",
    "town": "Liverpool",
    "postcode": "L1 4BE",
    "phone": "0151 363 1292",
    "lat": 53.4018,
    "rating": 4,
}

ZANZIBAR = {
    "id": 1002,
    "name": "Zanzibar",
    "town": "Liverpool",
    "postcode": "L1 4AN",
    "phone": "0151 707 0633",
}

CAVERN_LOUNGE = {
    "id": 1003,
    "name": "Cavern Lounge",
    "town": "Leeds",
    "postcode": "LS1 6DT",
    "phone": None,
    "type": "Bar",
}


def _reference_records() -> list[dict[str, str]]:
    """REFERENCE_CSV as canonical records (no codec involved)."""
    lines = REFERENCE_CSV.strip().split("\n")
    header = lines[0].split(",")
    return [dict(zip(header, line.split(","))) for line in lines[1:]]


@pytest.fixture
def registry():
    return load_field_maps()


@pytest.fixture
def mapper(registry):
    return FieldMapper(registry)


@pytest.fixture
def reconciler(mapper):
    return Reconciler(mapper)


@pytest.fixture
def raw_records():
    return [dict(PHASE_ONE), dict(ZANZIBAR), dict(CAVERN_LOUNGE)]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove venue-recon settings from the environment."""
    for name in (
        "VENUE_RECON_REFERENCE_CSV",
        "VENUE_RECON_FIELDMAP_DIR",
        "VENUE_RECON_MAX_WORKERS",
        "VENUE_RECON_LOG_LEVEL",
        "APP_ENV",
        "ORIGIN_URL_DEV",
        "ORIGIN_URL_PROD",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
