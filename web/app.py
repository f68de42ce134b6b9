"""HTTP transport for venue reconciliation.

Usage:
    uvicorn web.app:app --reload
    # or: python -m web.app

Routes:
    GET  /                    health check
    POST /api/map/{vendor}    raw records -> canonical CSV
    POST /api/match/{vendor}  {"inputRecords": [...], "latestCsv": "..."} -> partitions
    PUT  /api/reference       replace the stored reference table (raw CSV body)
"""

import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")

from venue_recon.config import Settings, load_field_maps
from venue_recon.errors import (
    ConfigError,
    EmptyPayloadError,
    EncodeError,
    ParseError,
    ReconError,
    UnknownVendorError,
)
from venue_recon.mapper import FieldMapper
from venue_recon.reconcile import ReconcilePayload, Reconciler
from venue_recon.reference import FileReferenceStore, InlineReference
from venue_recon.tabular import decode

log = logging.getLogger(__name__)

# Error kind -> HTTP status. Checked in order, so subclasses go first.
ERROR_STATUS: list[tuple[type[ReconError], int]] = [
    (EmptyPayloadError, 400),
    (UnknownVendorError, 404),
    (ParseError, 422),
    (EncodeError, 500),
    (ConfigError, 500),
]


def status_for(error: ReconError) -> int:
    for kind, status in ERROR_STATUS:
        if isinstance(error, kind):
            return status
    return 500


class MatchRequest(BaseModel):
    inputRecords: list[dict[str, Any]] = Field(default_factory=list)
    latestCsv: str = ""


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app. Field maps are loaded and validated here, once."""
    settings = settings or Settings.from_env()
    reconciler = Reconciler(
        FieldMapper(load_field_maps(settings.fieldmap_dir)),
        max_workers=settings.max_workers,
    )
    store = (
        FileReferenceStore(settings.reference_csv)
        if settings.reference_csv is not None
        else None
    )

    app = FastAPI(title="Venue Recon", docs_url=None, redoc_url=None)
    app.state.settings = settings
    app.state.reconciler = reconciler
    app.state.reference_store = store

    origin = settings.cors_origin
    if origin:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[origin],
            allow_methods=["GET", "POST", "PUT"],
            allow_headers=["*"],
        )

    @app.exception_handler(ReconError)
    async def recon_error_handler(request: Request, exc: ReconError):
        status = status_for(exc)
        log.warning("%s %s -> %d: %s", request.method, request.url.path, status, exc)
        return JSONResponse(status_code=status, content={"error": str(exc)})

    @app.get("/")
    async def index():
        return {"msg": "Hello World"}

    @app.get("/api/vendors")
    async def list_vendors():
        return {"vendors": list(reconciler.mapper.vendors())}

    @app.post("/api/map/{vendor}", response_class=PlainTextResponse)
    async def map_fields(vendor: str, body: MatchRequest):
        reference = InlineReference(body.latestCsv) if body.latestCsv.strip() else store
        csv_text = reconciler.map_only(vendor, body.inputRecords, reference)
        return PlainTextResponse(csv_text, media_type="text/csv")

    @app.post("/api/match/{vendor}")
    async def match_records(vendor: str, body: MatchRequest):
        payload = ReconcilePayload(
            input_records=body.inputRecords, latest_csv=body.latestCsv
        )
        result = reconciler.reconcile_payload(vendor, payload, fallback=store)
        return result.to_dict()

    @app.put("/api/reference")
    async def update_reference(request: Request):
        if store is None:
            return JSONResponse(
                status_code=409,
                content={"error": "No reference store configured (VENUE_RECON_REFERENCE_CSV)"},
            )
        try:
            text = (await request.body()).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"Reference table is not UTF-8: {e}") from e
        if not text.strip():
            raise EmptyPayloadError("No reference table provided")
        # utf-8-sig already consumed one mark; any left over is an error
        decode(text, has_bom=False)
        store.save(text)
        return {"isSuccess": True}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    uvicorn.run("web.app:app", host="0.0.0.0", port=8000)
