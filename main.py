# main.py (FastAPI)
import logging
from pathlib import Path
from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

import config
from api_schema import (
    CatalogUnavailable,
    ImportReport,
    ImportRequest,
    MatchResult,
    NormalizeRequest,
    NormalizeResponse,
    VerificationAttempt,
    VerifyMedicineRequest,
    VerifyTextRequest,
    VerifyTextResponse,
)
from catalog import InMemoryCatalog, build_catalog
from drug_matcher import resolve, verify_barcode, verify_text
from medicine_import import import_medicines, load_medicines_file
from normalizer import normalize, short_key

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("api")

app = FastAPI(title="Medicine Verification API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

MEDICINES_FILE = Path(config.MEDICINES_FILE)
catalog = None  # built at startup


@app.on_event("startup")
async def startup():
    global catalog
    catalog = build_catalog()
    if not isinstance(catalog, InMemoryCatalog):
        return
    if not MEDICINES_FILE.exists():
        logger.warning(f"Medicines file not found at {MEDICINES_FILE}; starting with an empty catalog.")
        return
    try:
        raw = load_medicines_file(MEDICINES_FILE)
        report = import_medicines(catalog, raw)
        logger.info(f"Loaded catalog with {len(catalog)} medicines ({report.errors} rejected).")
    except (OSError, ValueError):
        logger.exception("Failed to load medicines file; continuing with an empty catalog.")


def _catalog():
    if catalog is None:
        raise HTTPException(status_code=503, detail="Medicine catalog is not initialised.")
    return catalog


@app.post("/normalize", response_model=NormalizeResponse)
async def normalize_name(req: NormalizeRequest):
    canonical = normalize(req.text)
    return NormalizeResponse(canonical_name=canonical, short_key=short_key(canonical))


@app.post("/verify-medicine", response_model=VerificationAttempt)
async def verify_medicine(req: VerifyMedicineRequest):
    if not req.medicine_name or not req.medicine_name.strip():
        raise HTTPException(status_code=400, detail="Medicine name is required")

    canonical = normalize(req.medicine_name)
    if not canonical:
        raise HTTPException(status_code=400, detail="No medicine name could be extracted from the input")

    logger.info(f"Verifying medicine: {req.medicine_name!r} -> {canonical!r}")
    outcome = await resolve(_catalog(), canonical, req.medicine_name)
    if isinstance(outcome, CatalogUnavailable):
        raise HTTPException(status_code=503, detail=outcome.message)
    return VerificationAttempt(raw_query=req.medicine_name, canonical_name=canonical, outcome=outcome)


@app.post("/verify", response_model=VerifyTextResponse)
async def verify(req: VerifyTextRequest):
    results = await verify_text(_catalog(), req.text)
    return VerifyTextResponse(results=results)


@app.get("/medicines/barcode/{barcode}", response_model=MatchResult)
async def barcode_lookup(barcode: str):
    outcome = await verify_barcode(_catalog(), barcode)
    if isinstance(outcome, CatalogUnavailable):
        raise HTTPException(status_code=503, detail=outcome.message)
    return outcome


@app.post("/import", response_model=ImportReport)
async def import_catalog(req: ImportRequest):
    # Batched upserts block on I/O for remote catalogs
    return await run_in_threadpool(import_medicines, _catalog(), req.medicines)
