import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.config import get_settings
from app.core.errors import (
    LedgerError, InputError, ValidationError, AuthorizationError, NotFoundError,
    ConflictError, InternalError
)
from app.db.database import Base, engine
from app.api.v1.routes.groups import router as groups_router
from app.api.v1.routes.transactions import router as transactions_router
from app.api.v1.routes.users import router as users_router

logger = logging.getLogger(__name__)

# Checked in order, so subclasses must come before their bases
ERROR_STATUS = [
    (InputError, 400),
    (ValidationError, 422),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InternalError, 500),
]


def error_status(error: LedgerError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(error, error_class):
            return status_code
    return 500


def error_message(error: LedgerError) -> str:
    if isinstance(error, AuthorizationError):
        return "access denied"
    if isinstance(error, InternalError) or error_status(error) == 500:
        return "internal server error, please retry" if getattr(error, "retryable", False) else "internal server error"
    return error.message


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    Base.metadata.create_all(bind=engine)

    if settings.rabbitmq_enabled:
        from app.rabbitmq.setup import init_rabbitmq
        from app.rabbitmq.background_consumer import start_background_consumer, stop_background_consumer
        from app.rabbitmq.producer import close_rabbitmq_producer
        from app.services.notification_service import get_notification_dispatcher

        # Initialize RabbitMQ
        init_rabbitmq()
        dispatcher = get_notification_dispatcher()
        dispatcher.start()
        # Start background consumer for user profile events
        start_background_consumer()
        try:
            yield
        finally:
            stop_background_consumer()
            dispatcher.stop()
            close_rabbitmq_producer()
    else:
        logger.info("RabbitMQ disabled, notifications will only be logged")
        yield


app = FastAPI(
    title="Split Service - Shared Expense Ledger",
    description="Records group expenses and settlements and keeps per-member balances",
    version="2.0.0",
    lifespan=lifespan,
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = error_status(exc)
    if status_code == 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"success": False, "message": error_message(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"invalid request: {location} {errors[0].get('msg', '')}".strip()
    return JSONResponse(status_code=400, content={"success": False, "message": message})


app.include_router(groups_router)
app.include_router(transactions_router)
app.include_router(users_router)


@app.get("/")
def read_root():
    return {"message": "Split Service API", "version": "2.0.0"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
