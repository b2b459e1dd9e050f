"""
Mock Restaurant Application

A simulated restaurant ordering backend for developing and testing the
checkout client. Enforces CSRF tokens on mutating calls and bearer
sessions on staff routes.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routes import orders_router, payments_router, security_router
from .security.csrf_middleware import CSRFVerificationMiddleware
from .security.tokens import token_store

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("MOCK_RESTAURANT_LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Mock Restaurant starting up...")
    yield
    logger.info("Mock Restaurant shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Mock Restaurant",
    description="Simulated restaurant ordering API for checkout client testing",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("MOCK_RESTAURANT_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# CSRF verification middleware
app.add_middleware(CSRFVerificationMiddleware, store=token_store)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report body validation failures as 400 with a readable message"""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = f"Invalid {location}: {first.get('msg')}" if location else "Invalid request data"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


# Include API routers
app.include_router(security_router)
app.include_router(orders_router)
app.include_router(payments_router)


@app.get("/")
async def home():
    return {
        "message": "Mock Restaurant API",
        "docs": "/docs",
        "endpoints": {
            "csrf": "/api/csrf-token",
            "orders": "/api/orders",
            "payments": "/api/payments",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "mock-restaurant"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mock_restaurant.main:app",
        host=os.getenv("MOCK_RESTAURANT_HOST", "0.0.0.0"),
        port=int(os.getenv("MOCK_RESTAURANT_PORT", "5000")),
        reload=True,
    )
