"""
Exception handlers.

Every KnownError leaves the API as a classified ApiResponse envelope with
the error's own status code. Anything else becomes an unknown-failure
envelope with status 500.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pocketbinder.models.failure import KnownError, create_unknown_failure

logger = logging.getLogger(__name__)


async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=create_unknown_failure(exc).model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(KnownError, known_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
