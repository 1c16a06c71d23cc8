import logging
import os
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from spendly import orm_models  # noqa: F401  (register tables on Base.metadata)
from spendly.db import Base, engine
from spendly.middleware.request_id import RequestIdMiddleware
from spendly.routers import assistant, insights, llm_health, metrics, recurring_rules

logger = logging.getLogger("uvicorn.error")

if os.environ.get("APP_ENV", os.environ.get("ENV", "dev")).lower() == "prod":
    from spendly.logging import configure_json_logging

    configure_json_logging("INFO")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    try:
        yield
    finally:
        # In-memory SQLite would lose its schema between test clients
        if ":memory:" not in str(engine.url):
            engine.dispose()


app = FastAPI(
    title="Spendly Assistant",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
    ]
    logger.info("request.invalid path=%s errors=%s", request.url.path, len(errors))
    return JSONResponse(
        status_code=400,
        content={"error": "invalid_request", "message": "Request validation failed", "detail": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions with full traceback."""
    logger.error(
        "Unhandled exception in API request %s %s:\n%s",
        request.method,
        request.url.path,
        "".join(traceback.format_exc()),
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.add_middleware(RequestIdMiddleware)

app.include_router(assistant.router)
app.include_router(recurring_rules.router)
app.include_router(insights.router)
app.include_router(llm_health.router)
app.include_router(metrics.router)


@app.get("/healthz")
def healthz():
    return {"ok": True}
