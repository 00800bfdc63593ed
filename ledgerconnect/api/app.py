"""FastAPI application for Ledger Connect HTTP API."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ledgerconnect import __version__
from ledgerconnect.api.routes import router
from ledgerconnect.config import get_settings
from ledgerconnect.errors import LedgerError
from ledgerconnect.log import configure_logging, get_logger
from ledgerconnect.sdk import LedgerSDK

STATUS_BY_ERROR_CODE = {
    "VALIDATION_ERROR": 400,
    "AUTH_FAILED": 403,
    "NOT_AUTHORIZED": 403,
    "NOT_FOUND": 404,
    "INVARIANT_VIOLATION": 500,
}

settings = get_settings()
configure_logging(settings.log_level, json=settings.log_json)
logger = get_logger(__name__)

# Singleton SDK instance for the process
sdk = LedgerSDK()

app = FastAPI(
    title=settings.api_title,
    version=__version__,
    description="HTTP API for Ledger Connect: store-credit ledgers with per-category balances",
)

# Inject SDK into app state for route access
app.state.sdk = sdk

# Mount routes
app.include_router(router, prefix=settings.api_prefix)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = STATUS_BY_ERROR_CODE.get(exc.error_code, 400)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, error_code=exc.error_code,
                     error=exc.message)
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": {
                "error_code": exc.error_code,
                "message": exc.message,
                "field": getattr(exc, "field", None),
            }
        },
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": app.version}
