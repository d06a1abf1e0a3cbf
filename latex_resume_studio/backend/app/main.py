# File: backend/app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from app.core.config import settings
from app.api.api import api_router
from app.db.database import SessionLocal, engine
from app.db import models
from app.llm.gateway import GenerationError, build_generation_gateway
from app.services.ai_jobs import JobRunner

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

def init_db():
    try:
        logger.info("Creating database tables if they don't exist...")
        models.Base.metadata.create_all(bind=engine)
        logger.info("Database initialization completed.")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

def build_job_runner() -> JobRunner:
    """One gateway per process; jobs fail with a clear message if it cannot be built."""
    try:
        gateway = build_generation_gateway(settings)
    except (GenerationError, ValueError) as e:
        logger.warning(f"Generation provider '{settings.GENERATION_PROVIDER}' unavailable: {e}")
        gateway = None
    return JobRunner(
        SessionLocal,
        gateway,
        delay_seconds=settings.GENERATION_DELAY_SECONDS,
        timeout_seconds=settings.GENERATION_TIMEOUT_SECONDS,
    )

# Initialize database
init_db()

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION
)
app.state.job_runner = build_job_runner()

# Configure CORS with settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)

@app.get("/")
def read_root():
    return {"status": "LaTeX Resume Studio API is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
