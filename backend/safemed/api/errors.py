"""Error envelope shared by every route."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from safemed.logging import request_id_var
from safemed.services.exceptions import AccessError

logger = logging.getLogger("safemed")


def _error_response(status_code: int, message, error_type: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "status_code": status_code,
                "type": error_type,
                **extra,
                "request_id": request_id_var.get(),
            }
        },
    )


async def access_error_handler(_request: Request, exc: AccessError):
    return _error_response(exc.status_code, exc.message, exc.code)


async def http_exception_handler(_request: Request, exc: HTTPException):
    response = _error_response(exc.status_code, exc.detail, "http_error")
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    return _error_response(
        422, "Validation error", "validation_error", details=jsonable_encoder(exc.errors())
    )


async def storage_exception_handler(_request: Request, _exc: SQLAlchemyError):
    logger.exception("Storage error")
    return _error_response(503, "Storage unavailable", "storage_error")


async def unhandled_exception_handler(_request: Request, _exc: Exception):
    logger.exception("Unhandled error")
    return _error_response(500, "Internal server error", "server_error")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessError, access_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
