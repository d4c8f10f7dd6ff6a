from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from intervox.api import deps
from intervox.api.routes import chat, investigations
from intervox.config import settings
from intervox.errors import ErrorKind, IntervoxError

# Importing the logger service configures loguru sinks.
from intervox.services import logger as _log_service  # noqa: F401

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Intervox API starting")
    yield
    await deps.shutdown()
    logger.info("Intervox API stopped")


app = FastAPI(
    title="Intervox",
    description="Investigate a public figure and talk to their persona",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(investigations.router)
app.include_router(chat.router)


@app.exception_handler(IntervoxError)
async def intervox_error_handler(request: Request, exc: IntervoxError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message or str(exc), "kind": exc.kind.value},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=400,
        content={"error": "; ".join(problems) or "Invalid request", "kind": ErrorKind.VALIDATION.value},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "kind": ErrorKind.PROVIDER.value},
    )


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "intervox"}
