from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import traceback

from vivento import config
from vivento.db import check_connection, ensure_indexes, get_database
from vivento.errors import ViventoError
from vivento.routes import admin, auth, clubs, events

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Vivento API", debug=config.ENVIRONMENT == "development")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(clubs.router, prefix="/clubs", tags=["clubs"])
app.include_router(events.router, prefix="/events", tags=["events"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.exception_handler(ViventoError)
async def vivento_exception_handler(request: Request, exc: ViventoError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "code": exc.code})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail, "code": "http_error"})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message, "code": "validation_error"})


@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on path %s:\n%s", request.url.path, traceback.format_exc())
    return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "server_error"})


@app.on_event("startup")
def startup_db_client():
    ensure_indexes(get_database())
    if config.otp_bypass_active():
        logger.warning("OTP bypass code is enabled (ENVIRONMENT=%s)", config.ENVIRONMENT)


@app.get("/health")
async def health_check():
    if check_connection():
        return JSONResponse(content={"status": "ok", "database": "connected"})
    return JSONResponse(content={"status": "error", "database": "disconnected"}, status_code=500)
