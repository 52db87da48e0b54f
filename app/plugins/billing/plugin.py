import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from plugins.billing.models import fail
from plugins.billing.router import router
from utils.exceptions import BillingError

logger = structlog.get_logger(__name__)


async def billing_error_handler(request: Request, exc: BillingError):
    logger.warning(
        "billing_error",
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=exc.status_code, content=fail(exc.message).model_dump())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', [])[1:]) or 'body'}: {e.get('msg')}"
        for e in errors
    )
    logger.warning("request_validation_failed", path=request.url.path, errors=errors)
    return JSONResponse(status_code=422, content=fail(message or "Validation failed").model_dump())


def init_plugin(app: FastAPI):
    app.add_exception_handler(BillingError, billing_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    return {"router": router}
