"""Translate ledger errors to HTTP responses."""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from condo_ledger.errors import LedgerError

logger = logging.getLogger(__name__)


def error_payload(error: LedgerError) -> dict:
    """Body returned for a ledger error: {"error": {code, message, context}}."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
            "context": jsonable_encoder(error.context),
        }
    }


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """FastAPI exception handler for the LedgerError hierarchy."""
    if exc.http_status >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.http_status, content=error_payload(exc))


__all__ = ["error_payload", "ledger_error_handler"]
