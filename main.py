"""
Main FastAPI application entry point for the Contact Identity Resolution service
This file sets up the FastAPI application with configuration, middleware,
error mapping and the /identify endpoint. It serves as the entry point for
both local development and AWS Lambda deployment.
"""

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import logging
import traceback
from datetime import datetime, timezone

from schemas.identify import IdentifyRequest, IdentifyResponse, ErrorResponse
from services.exceptions import (
    ConcurrentClusterConflictError,
    InvalidInputError,
    StoreUnavailableError,
)
from services.identity_service import IdentityService, identity_service
from database import DatabaseManager, db_manager
from config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    debug=settings.DEBUG
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def get_identity_service() -> IdentityService:
    """Dependency hook for the identity service (overridden in tests)"""
    return identity_service


def get_database() -> DatabaseManager:
    """Dependency hook for the database manager (overridden in tests)"""
    return db_manager


def _error(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message, details=details).model_dump()
    )


# Exception handlers
@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc):
    """Handle request validation errors"""
    logger.warning(f"Validation error for {request.url}: {exc}")

    error_details = []
    for error in exc.errors():
        error_details.append({
            "field": " -> ".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return _error(400, "ValidationError", "Request validation failed", {"errors": error_details})


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    logger.warning(f"Invalid input for {request.url}: {exc}")
    return _error(400, exc.error_code, str(exc))


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Contact store unavailable for {request.url}: {exc.__cause__ or exc}")
    return _error(
        503,
        exc.error_code,
        "Contact store is currently unavailable. Please try again later."
    )


@app.exception_handler(ConcurrentClusterConflictError)
async def cluster_conflict_handler(request: Request, exc: ConcurrentClusterConflictError):
    logger.warning(f"Cluster conflict for {request.url}: {exc}")
    return _error(409, exc.error_code, "Contact was modified concurrently. Please retry the request.")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(f"Unexpected error for {request.url}: {exc}")
    logger.error(f"Traceback: {traceback.format_exc()}")

    return _error(500, "InternalServerError", "An unexpected error occurred")


@app.get("/")
async def root():
    """
    Root endpoint that returns basic API information
    """
    return {
        "message": "Contact Identity Resolution API is running",
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check(database: DatabaseManager = Depends(get_database)):
    """
    Health check endpoint for monitoring and load balancer health checks
    """
    db_status = "unknown"
    db_error = None
    try:
        if await database.test_connection():
            db_status = "connected"
        else:
            db_status = "disconnected"
    except Exception as e:
        db_status = "error"
        db_error = str(e)[:100]

    response = {
        "status": "healthy" if db_status == "connected" else "degraded",
        "environment": settings.ENVIRONMENT,
        "version": settings.API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "lambda": settings.is_lambda_environment(),
        "database": {
            "status": db_status
        }
    }

    if db_error:
        response["database"]["error"] = db_error

    return response


@app.post("/identify", response_model=IdentifyResponse)
async def identify_endpoint(
    request: IdentifyRequest,
    service: IdentityService = Depends(get_identity_service)
):
    """
    Main identity resolution endpoint

    Links customer identities based on email and/or phone number.
    Returns consolidated contact information including all linked emails,
    phone numbers, and secondary contact IDs.

    **Algorithm:**
    1. Find existing contacts matching email or phone
    2. If no matches -> create new primary contact
    3. If matches span several clusters -> oldest primary wins, the rest are demoted
    4. If the request carries a new email or phone -> create secondary contact
    5. Return consolidated contact information
    """
    logger.info(f"Processing identify request: email={request.email}, phone={request.phoneNumber}")

    response = await service.identify_contact(request)

    logger.info(f"Successfully processed request. Primary contact ID: {response.contact.primaryContactId}")
    return response


# Run the application with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1
    )
