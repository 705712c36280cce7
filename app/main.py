from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from app.database.database import engine, Base

# Import middleware
from app.common.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from app.common.exceptions import AppError

# Import routers
from app.modules.auth.router import auth_router, users_router
from app.modules.machines.router import machines_router, materials_router, services_router
from app.modules.clients.router import clients_router
from app.modules.devis.router import devis_router
from app.modules.invoices.router import invoices_router
from app.modules.payments.router import payments_router
from app.modules.expenses.router import expenses_router
from app.modules.notifications.router import notifications_router
from app.modules.dashboard.router import dashboard_router

# Import models for table creation
import app.common.sequences
import app.modules.auth.models
import app.modules.machines.models
import app.modules.clients.models
import app.modules.devis.models
import app.modules.invoices.models
import app.modules.expenses.models
import app.modules.notifications.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Atelier Back Office API",
    description="Devis, facturation et encaissements d'un atelier de fabrication (CNC, laser, chants, panneaux)",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(machines_router)
app.include_router(materials_router)
app.include_router(services_router)
app.include_router(clients_router)
app.include_router(devis_router)
app.include_router(invoices_router)
app.include_router(payments_router)
app.include_router(expenses_router)
app.include_router(notifications_router)
app.include_router(dashboard_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)


@app.get("/")
async def read_root():
    return {
        "message": "Atelier Back Office API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Atelier Back Office API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Notification push: {'enabled' if settings.NOTIFICATIONS_PUSH_ENABLED else 'disabled'}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Atelier Back Office API shutting down...")
