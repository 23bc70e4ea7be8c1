from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request

from . import config
from .config import build_verification_config, validate_config
from .errors import FailureCategory
from .importer import ImportOutcome, process_import, strip_import_param
from .logging_config import configure_logging
from .models import CardList, CardOut, ImportRequest, ImportResponse, TrustedKeyOut, VerificationOut
from .resolver import ImportResolver
from .storage import CardRecord, SqliteCardStore

HTTP_STATUS_BY_CATEGORY = {
    FailureCategory.TRANSPORT: 502,
    FailureCategory.INTEGRITY: 422,
    FailureCategory.AUTHENTICATION: 403,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the import components unless a host or test already set them."""
    configure_logging("DEBUG" if config.is_debug() else config.LOG_LEVEL, json_format=config.LOG_JSON)
    state = app.state
    if getattr(state, "store", None) is None:
        store = SqliteCardStore(config.DB_PATH)
        store.init_db()
        state.store = store
    if getattr(state, "verification", None) is None:
        state.verification = build_verification_config()
    owns_resolver = getattr(state, "resolver", None) is None
    if owns_resolver:
        state.resolver = ImportResolver()
    try:
        yield
    finally:
        if owns_resolver:
            await state.resolver.aclose()
            state.resolver = None


app = FastAPI(title="dcard import service", lifespan=lifespan)


def _card_out(record: CardRecord) -> CardOut:
    return CardOut(**record.to_dict())


def _raise_for_failure(outcome: ImportOutcome, location: Optional[str] = None) -> None:
    status = HTTP_STATUS_BY_CATEGORY.get(outcome.error.category, 400)
    detail = {"message": outcome.message, "category": outcome.error.category.value}
    if location is not None:
        detail["location"] = location
    raise HTTPException(status, detail)


async def _run_import(
    request: Request,
    reference: str,
    gateway_url: Optional[str] = None,
    deep_link: bool = False
) -> ImportResponse:
    state = request.app.state
    navigation = {}

    def clear_reference():
        if deep_link:
            navigation["location"] = strip_import_param(str(request.url))

    outcome = await process_import(
        reference,
        resolver=state.resolver,
        config=state.verification,
        store=state.store,
        gateway_url=gateway_url,
        on_cleanup=clear_reference,
    )
    if not outcome.ok:
        _raise_for_failure(outcome, navigation.get("location"))

    return ImportResponse(
        message=outcome.message,
        source=outcome.source,
        verification=VerificationOut(**outcome.result.to_dict()),
        card=outcome.document,
        stored=outcome.record is not None,
        location=navigation.get("location"),
    )


@app.post("/import", response_model=ImportResponse)
async def import_card(req: ImportRequest, request: Request):
    return await _run_import(request, req.reference, req.gateway_url)


@app.get("/open", response_model=ImportResponse)
async def open_deep_link(request: Request, reference: str = Query(..., alias="import", min_length=1)):
    """Deep-link entry point: ``/open?import=<reference>``."""
    return await _run_import(request, reference, deep_link=True)


@app.get("/cards", response_model=CardList)
def list_cards(request: Request):
    return CardList(cards=[_card_out(r) for r in request.app.state.store.list_cards()])


@app.get("/cards/{fingerprint}", response_model=CardOut)
def get_card(fingerprint: str, request: Request):
    record = request.app.state.store.get_card(fingerprint)
    if not record:
        raise HTTPException(404, "NOT_FOUND")
    return _card_out(record)


@app.get("/trusted_keys", response_model=List[TrustedKeyOut])
def trusted_keys(request: Request):
    entries = request.app.state.verification.registry.describe()
    return [
        TrustedKeyOut(key_id=key_id, issuer=entry.get("issuer", ""), public_key=entry.get("publicKey", ""))
        for key_id, entry in sorted(entries.items())
    ]


@app.get("/health")
def health(request: Request):
    return {
        "status": "ok",
        "env": config.ENV,
        "production": config.is_production(),
        "strict": request.app.state.verification.strict,
        "checks": validate_config(),
    }
