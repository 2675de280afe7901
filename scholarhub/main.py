import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scholarhub.config import settings
from scholarhub.database import SessionLocal, init_db
from scholarhub.dependencies import get_email_sender, get_notifier, get_storage, get_text_extractor
from scholarhub.errors import ScholarHubError
from scholarhub.routers import documents, notifications, realtime
from scholarhub.services.reminder_service import ReminderScheduler
from scholarhub.utils.filesystem import ensure_data_dirs

VERSION = "0.1.0"

logger = logging.getLogger("scholarhub")


def configure_logging():
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    ensure_data_dirs()
    init_db()
    # Build the shared backends once so misconfiguration fails at startup.
    get_storage()
    get_text_extractor()

    scheduler = ReminderScheduler(get_notifier(), get_email_sender(), session_factory=SessionLocal)
    if settings.scheduler_enabled:
        scheduler.start()
    app.state.reminders = scheduler
    logger.info("ScholarHub document service started")
    yield
    scheduler.shutdown()


app = FastAPI(
    title="ScholarHub",
    description="Scholarship document verification and notification service",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ScholarHubError)
async def scholarhub_error_handler(request: Request, exc: ScholarHubError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail or exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(documents.router, prefix=settings.api_prefix)
app.include_router(notifications.router, prefix=settings.api_prefix)
app.include_router(realtime.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}
