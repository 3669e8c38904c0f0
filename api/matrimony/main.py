import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .deps import close_default_repository
from .errors import InternalError, MatchingError, ValidationError
from .routes import include_modular_routers

logger = logging.getLogger(__name__)

app = FastAPI(title="Matrimony Match API")
include_modular_routers(app)

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(err: MatchingError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content={"error": err.to_dict()})


@app.exception_handler(MatchingError)
async def matching_error_handler(request: Request, exc: MatchingError) -> JSONResponse:
    if isinstance(exc, InternalError):
        logger.error("[MATCH] %s %s failed kind=%s trace_id=%s: %s", request.method, request.url.path, exc.kind, exc.trace_id, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = (exc.errors() or [{}])[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{loc}: {first.get('msg', 'invalid request')}" if loc else "malformed request body"
    return _error_response(ValidationError(message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    err = InternalError("unexpected error")
    logger.exception("[MATCH] unhandled error on %s %s trace_id=%s", request.method, request.url.path, err.trace_id)
    return _error_response(err)


@app.on_event("shutdown")
def release_repository() -> None:
    close_default_repository()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
