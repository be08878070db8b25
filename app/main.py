import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.logging import setup_logging, request_id_ctx
from app.core.errors import AppError, PersistenceError, STATUS_BAD_REQUEST, STATUS_INTERNAL_ERROR, MSG_INTERNAL_ERROR
from app.core.db import init_models
from app.api.router import api_router
from app.modules.drops.maintenance import run_drop_maintenance


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    if settings.DROP_MAINTENANCE_ENABLED:
        app.state.maintenance_task = asyncio.create_task(run_drop_maintenance())
    logger.info("%s v%s ready (content root %s)", settings.APP_NAME, settings.APP_VERSION, settings.CONTENT_ROOT)
    yield
    task = getattr(app.state, "maintenance_task", None)
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id", "-")
    request_id_ctx.set(rid)
    response = await call_next(request)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
    )

    return response


def _error_body(message: str) -> dict:
    return {"success": False, "error": message}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.is_server_error:
        logger.error(f"{type(exc).__name__} for request {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(MSG_INTERNAL_ERROR))
    logger.warning(f"API Error: {request.method} {request.url.path} -> {exc.status_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    logger.warning(f"API Error: {request.method} {request.url.path} -> 400 {message}")
    return JSONResponse(status_code=STATUS_BAD_REQUEST, content=_error_body(message))


@app.exception_handler(SQLAlchemyError)
async def persistence_error_handler(request: Request, exc: SQLAlchemyError):
    return await app_error_handler(request, PersistenceError(f"DB error: {exc}"))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=STATUS_INTERNAL_ERROR,
        content=_error_body(MSG_INTERNAL_ERROR),
    )


app.include_router(api_router, prefix=settings.API_PREFIX)
