from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import asyncio
import logging
import uuid

from .config import settings
from .database import create_tables, SessionLocal
from .errors import DomainError
from .models.user import User, UserRole
from .services.event_emitter import AutomationEventEmitter
from .services.job_queue import JobProcessor
from .services.scheduler import RecurringJobScheduler
from .utils.logging_config import setup_logging, set_request_context, clear_request_context
from .utils.rate_limiter import limiter
from .utils.security import hash_password

from .routers import auth, users, properties, guests, bookings, archive, tasks, finance, automations

logger = logging.getLogger(__name__)


def seed_default_admin():
    """Create the first admin account on an empty user table"""
    db = SessionLocal()
    try:
        if db.query(User).first():
            return
        db.add(User(
            email=settings.default_admin_email,
            hashed_password=hash_password(settings.default_admin_password),
            first_name="System",
            last_name="Admin",
            role=UserRole.ADMIN.value,
            is_active=True,
        ))
        db.commit()
        logger.info(f"Created default admin user ({settings.default_admin_email})")
    finally:
        db.close()


def run_job_batch() -> tuple:
    db = SessionLocal()
    try:
        return JobProcessor(db).process_batch(limit=settings.worker_batch_size)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json)

    logger.info(f"Starting rentdesk ({settings.environment})")
    logger.info(f"CORS origins: {settings.cors_origins}")

    create_tables()
    seed_default_admin()

    app.state.automation_emitter = AutomationEventEmitter(SessionLocal, max_workers=settings.automation_workers)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = RecurringJobScheduler(SessionLocal)
        scheduler.start()
    app.state.scheduler = scheduler

    # ==========================================
    # BACKGROUND JOB WORKER
    # ==========================================
    worker_task = None
    worker_running = True

    async def run_job_worker():
        poll_interval = settings.worker_poll_interval
        logger.info(f"Job worker started (interval: {poll_interval}s, batch: {settings.worker_batch_size})")

        while worker_running:
            try:
                success, failed = await asyncio.to_thread(run_job_batch)
                if success + failed > 0:
                    logger.info(f"Job worker: {success} completed, {failed} failed")
            except Exception as e:
                logger.error(f"Job worker error: {e}")

            await asyncio.sleep(poll_interval)

    if settings.worker_enabled:
        worker_task = asyncio.create_task(run_job_worker())
    else:
        logger.info("Job worker disabled, run worker.py to process jobs")

    yield

    # Shutdown
    logger.info("Shutting down rentdesk...")
    worker_running = False
    if worker_task:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
    if scheduler:
        scheduler.stop()
    app.state.automation_emitter.shutdown(wait=False)


# Create FastAPI app
app = FastAPI(
    title="rentdesk API",
    description="Vacation rental back office: bookings, guests, cleaning, maintenance, finance and automations",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


# Add other middleware AFTER CORS
app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict())
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({
            "detail": exc.errors(),
            "kind": "validation_failure",
        })
    )


# Rate limit handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many attempts, please try again later", "kind": "rate_limited"}
    )


# Include routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(properties.router)
app.include_router(properties.owners_router)
app.include_router(guests.router)
app.include_router(bookings.router)
app.include_router(archive.router)
app.include_router(tasks.cleaning_router)
app.include_router(tasks.maintenance_router)
app.include_router(finance.router)
app.include_router(automations.router)


@app.get("")
@app.get("/")
async def root():
    return {
        "message": "rentdesk API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running",
    }


@app.get("/health")
@app.get("/health/")
async def health_check():
    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "healthy",
        "scheduler": scheduler.status() if scheduler else {"running": False},
    }
