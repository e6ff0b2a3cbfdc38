from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime
import asyncio
import logging

from database.connection import create_tables
from routers import conversation, message, product, purchase, realtime, transaction
from services.product_sync import run_product_sync_worker
from services.realtime import RealtimeChannel
from core.config import settings
from core.middleware import RequestLoggingMiddleware
from core.exceptions import BaseCustomException
from core.response import error_response

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Campus Marketplace Backend API",
    description="Transactions, conversations and real-time messaging for the student marketplace",
    version="1.0.0"
)

# Shared by the message pipeline and the chat socket
app.state.realtime_channel = RealtimeChannel()
app.state.product_sync_task = None

# Global exception handler for custom exceptions
@app.exception_handler(BaseCustomException)
async def custom_exception_handler(request: Request, exc: BaseCustomException):
    """Handle custom exceptions with standardized response format."""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Custom exception [{request_id}] on {request.method} {request.url}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            message=exc.message,
            error_code=exc.__class__.__name__,
            details=exc.details
        )
    )

# Global exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed error messages."""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Validation error [{request_id}] on {request.method} {request.url}: {exc}")

    error_details = []
    for error in exc.errors():
        error_details.append({
            "field": '.'.join(str(x) for x in error['loc']),
            "message": error['msg'],
            "type": error['type']
        })

    return JSONResponse(
        status_code=422,
        content=error_response(
            message="Request validation failed",
            error_code="VALIDATION_ERROR",
            details={"errors": error_details}
        )
    )

# Global exception handler for general HTTP exceptions
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with logging."""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"HTTP exception [{request_id}] on {request.method} {request.url}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            message=str(exc.detail) if isinstance(exc.detail, str) else "HTTP error occurred",
            error_code="HTTP_ERROR",
            details={"status_code": exc.status_code, "detail": exc.detail}
        )
    )

# Global exception handler for unexpected errors
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Unexpected error [{request_id}] on {request.method} {request.url}: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content=error_response(
            message="An unexpected error occurred. Please try again.",
            error_code="INTERNAL_SERVER_ERROR",
            details={"request_id": request_id}
        )
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(transaction.router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(conversation.router, prefix="/api/conversations", tags=["Conversations"])
app.include_router(message.router, prefix="/api/messages", tags=["Messages"])
app.include_router(purchase.router, prefix="/api/purchases", tags=["Purchases"])
app.include_router(product.router, prefix="/api/products", tags=["Products"])
app.include_router(realtime.router, tags=["Realtime"])

@app.on_event("startup")
async def startup_event():
    """Initialize the application on startup."""
    try:
        logger.info("Starting up Campus Marketplace Backend API...")
        create_tables()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to start application: {str(e)}")
        raise

    if settings.PRODUCT_SYNC_INTERVAL_SECONDS > 0:
        app.state.product_sync_task = asyncio.create_task(
            run_product_sync_worker(
                settings.PRODUCT_SYNC_INTERVAL_SECONDS,
                settings.PRODUCT_SYNC_MAX_ATTEMPTS
            )
        )

@app.on_event("shutdown")
async def shutdown_event():
    task = app.state.product_sync_task
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        app.state.product_sync_task = None
    logger.info("Campus Marketplace Backend API stopped")

@app.get("/")
def root():
    """Root endpoint for API health check."""
    return {
        "message": "Welcome to Campus Marketplace Backend API",
        "status": "healthy",
        "version": "1.0.0"
    }

@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.utcnow().isoformat()
    }
