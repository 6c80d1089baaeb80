"""
FastAPI entrypoint for the TripLedger budget service.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tripledger.core.config import settings
from tripledger.core.errors import BudgetError, ConsistencyError, ValidationError
from tripledger.core.utils import format_error
from tripledger.api.router import api_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="TripLedger API",
    description="Shared trip budgets, expense splits and budget snapshots",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BudgetError)
async def budget_error_handler(request: Request, exc: BudgetError):
    """Render engine errors as structured JSON."""
    if isinstance(exc, ConsistencyError):
        logger.critical(
            f"Consistency violation on {request.method} {request.url.path}: {exc.message}",
            exc_info=exc
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error(exc.message, exc.to_details())
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Render malformed request bodies in the same shape as engine errors."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    details = {"type": "ValidationError"}
    if field:
        details["field"] = field
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    logger.info(f"Rejected request {request.method} {request.url.path}: {message}")
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=format_error(message, details)
    )


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "TripLedger API is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
