from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from college_fees.api.v1.endpoints import admin_fees, hod_fees, faculty_fees, student_fees
from college_fees.core.config import settings
from college_fees.core.errors import register_error_handlers
from college_fees.db.supabase import check_connection

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting College Fee Ledger API...")
    if await check_connection():
        logger.info("Supabase connection established")
    else:
        logger.error("Supabase connection failed; fee endpoints will answer 500 until it recovers")

    yield

    # Shutdown
    logger.info("Shutting down College Fee Ledger API...")

# Initialize FastAPI app
app = FastAPI(
    title="College Fee Ledger API",
    description="Fee ledger, payment state and collection statistics with role-scoped access",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }

# Include API routers
prefix = settings.API_V1_PREFIX
app.include_router(admin_fees.router, prefix=f"{prefix}/admin/fees", tags=["Fees (Administrator)"])
app.include_router(hod_fees.router, prefix=f"{prefix}/hod/fees", tags=["Fees (Department Head)"])
app.include_router(faculty_fees.router, prefix=f"{prefix}/faculty/fees", tags=["Fees (Faculty, read-only)"])
app.include_router(student_fees.router, prefix=f"{prefix}/student/fees", tags=["Fees (Student)"])

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "College Fee Ledger API",
        "docs": "/api/docs",
        "version": settings.VERSION
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "college_fees.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development"
    )
