import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from himind.api.dependencies import get_orchestrator
from himind.api.endpoints import router
from himind.core.config import settings
from himind.core.tracing import instrument_app, instrument_httpx, setup_tracing, shutdown_tracing
from himind.shared.correlation import CorrelationMiddleware
from himind.shared.errors import (
    ErrorCode,
    HiMindError,
    error_response,
    from_exception,
    internal_error,
    validation_error,
)
from himind.shared.logging_config import setup_logging

setup_logging(settings.SERVICE_NAME)
logger = logging.getLogger("HiMind.Main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_tracing()
    instrument_httpx()

    orchestrator = None
    if settings.ORCHESTRATOR_ENABLED:
        orchestrator = get_orchestrator()
        await orchestrator.start()
    else:
        logger.info("Processing orchestrator disabled (ORCHESTRATOR_ENABLED=false)")

    yield

    if orchestrator is not None:
        await orchestrator.stop(wait=True, timeout=settings.JOB_TIMEOUT_SECONDS)
    shutdown_tracing()


app = FastAPI(
    title="HiMind Knowledge Service",
    description="Organizational knowledge ingestion, topic discovery and expert search",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(CorrelationMiddleware)
instrument_app(app)


def _correlation_id(request: Request):
    return getattr(request.state, "correlation_id", None)


@app.exception_handler(HiMindError)
async def himind_error_handler(request: Request, exc: HiMindError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return from_exception(exc, correlation_id=_correlation_id(request))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return validation_error("Invalid request", details={"errors": errors}, correlation_id=_correlation_id(request))


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    code = ErrorCode.NOT_FOUND if exc.status_code == 404 else ErrorCode.BAD_REQUEST
    return error_response(code, str(exc.detail), exc.status_code, correlation_id=_correlation_id(request))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return internal_error(correlation_id=_correlation_id(request))


app.include_router(router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": "HiMind Knowledge Service Running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
