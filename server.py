from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from database.mongodb import db, ensure_indexes
from config import get_settings
from routes import aircraft, components, monitoring
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the app"""
    # Startup
    await db.connect(settings.mongo_url, settings.db_name)
    await ensure_indexes(db.get_db())
    logger.info("Component Monitoring Backend started")
    yield
    # Shutdown
    await db.disconnect()
    logger.info("Component Monitoring Backend stopped")

# Create FastAPI app
app = FastAPI(
    title="Component Monitoring API",
    description="Life-limit and overhaul monitoring for aircraft components",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(aircraft.router)
app.include_router(components.router)
app.include_router(monitoring.router)

@app.get("/")
async def root():
    return {
        "message": "Component Monitoring API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/api")
async def api_root():
    return {
        "message": "Component Monitoring API",
        "endpoints": {
            "aircraft": "/api/aircraft",
            "components": "/api/components",
            "monitoring": "/api/monitoring"
        }
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
