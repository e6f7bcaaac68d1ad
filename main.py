# Service Mapping Engine - Main Application Entry Point

# Load environment variables FIRST (before any other imports that use config)
from dotenv import load_dotenv
load_dotenv()  # This loads the .env file

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from api.routes.service_mapping_routes import router as service_mapping_router
from api.services.service_mapping_errors import DataSourceUnavailable

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events"""
    # Startup
    logger.info("🚀 Service Mapping Engine starting up...")

    from config import AppConfig

    logger.info("🔧 Configuration Status:")
    logger.info(f"   🗄️ DATABASE_URL: {AppConfig.DATABASE_URL}")
    logger.info(f"   🎯 AUTO_ACCEPT_THRESHOLD: {AppConfig.AUTO_ACCEPT_THRESHOLD}")
    logger.info(f"   📦 BATCH_SIZE: {AppConfig.BATCH_SIZE}")
    logger.info(f"   🔐 ADMIN_API_KEY: {'✅ Loaded' if AppConfig.ADMIN_API_KEY else '⚠️ Not set (run endpoint is open)'}")

    if AppConfig.validate_config():
        logger.info("✅ All required configuration loaded successfully")
    else:
        logger.error("❌ Configuration validation failed - check environment variables")

    yield

    # Shutdown
    logger.info("🛑 Service Mapping Engine shutting down...")


app = FastAPI(
    title="Service Mapping Engine",
    description="Matches provider service labels to the canonical service taxonomy",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(service_mapping_router)


# Raised from dependencies (e.g. get_database) before a route's own handler runs
@app.exception_handler(DataSourceUnavailable)
async def data_source_unavailable_handler(request: Request, exc: DataSourceUnavailable):
    logger.error(f"❌ {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "service-mapping-engine"}


if __name__ == "__main__":
    import uvicorn
    from config import AppConfig

    uvicorn.run("main:app", host=AppConfig.HOST, port=AppConfig.PORT, reload=AppConfig.DEBUG)
