# FastAPI Application Entry Point
from fastapi import FastAPI

# Configuration and Observability
from customer_case_service.app.config import settings
from customer_case_service.app.observability import setup_opentelemetry, logger

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME_API)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor

# Database connection
from customer_case_service.infrastructure.database import connection as db_connection
from customer_case_service.infrastructure.database.record_store import ensure_indexes

# API Routers
from customer_case_service.app.api.v1.endpoints import health as health_router
from customer_case_service.app.api.v1.endpoints import cases as cases_router
from customer_case_service.app.api.v1.endpoints import customers as customers_router

# --- FastAPI Application Instance ---
app = FastAPI(
    title="Customer Case Service",
    description="Manages customer service cases: one open case per customer, primary contact resolution.",
    version="0.1.0"
)

# --- Event Handlers for DB Connection & OTel Instrumentation ---
@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup...")
    try:
        PymongoInstrumentor().instrument()
        logger.info("PyMongo instrumentation complete.")

        await db_connection.connect_to_mongo()
        await ensure_indexes(db_connection.db, enforce_open_case_index=settings.ENFORCE_OPEN_CASE_INDEX)
        logger.info("MongoDB connection established and indexes ensured.")
    except Exception as e:
        logger.error(f"Failed during startup: {e}", exc_info=True)

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI application shutdown...")
    db_connection.close_mongo_connection()

FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

# Include API Routers
app.include_router(health_router.router)
app.include_router(cases_router.router, prefix="/api/v1")
app.include_router(customers_router.router, prefix="/api/v1")

logger.info("API routers included. Application setup complete.")

# To run: uvicorn customer_case_service.app.main:app --reload --port 8000
