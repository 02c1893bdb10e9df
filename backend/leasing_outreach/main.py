"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from leasing_outreach.api.v1.routes import api_router
from leasing_outreach.core.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup warns about unconfigured providers; tasks for those channels will
    fail their dispatch and be retried per cadence.
    """
    settings = get_settings()
    logger.info(f"Starting Leasing Outreach API ({settings.environment})...")

    missing = [
        name for name, value in (
            ("SUPABASE_URL", settings.supabase_url),
            ("BLAND_API_KEY", settings.bland_api_key),
            ("TWILIO_ACCOUNT_SID", settings.twilio_account_sid),
            ("RESEND_API_KEY", settings.resend_api_key),
        )
        if not value
    ]
    if missing:
        logger.warning(f"Configuration warnings: {', '.join(missing)} not set")

    yield  # Application is running

    logger.info("Leasing Outreach API shutdown complete")


app = FastAPI(
    title="Leasing Outreach Engine",
    description="Compliance-gated task dispatch for leasing lead outreach",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=get_settings().api_prefix)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
