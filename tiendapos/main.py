# tiendapos/main.py
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from tiendapos.config.settings import settings
from tiendapos.core.exceptions import TiendaPOSError
from tiendapos.core.middleware import setup_middleware
from tiendapos.api.v1.router import api_router
from tiendapos.shared.schemas.common import ErrorResponse

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"{settings.app_name} iniciando - versión {settings.version}")
    logger.info(f"Entorno: {'Development' if settings.debug else 'Production'}")
    logger.info(f"JWT: {settings.algorithm}, expira en {settings.access_token_expire_minutes} minutos")
    logger.info(f"Base de datos: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'localhost'}")

    yield

    # Shutdown
    logger.info(f"{settings.app_name} detenido")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Back-office de punto de venta: stock, ventas, créditos, caja y liquidación de distribuidores",
    docs_url="/docs",
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)

@app.exception_handler(TiendaPOSError)
async def tiendapos_error_handler(request: Request, exc: TiendaPOSError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            message=exc.detail,
            error_code=exc.error_code,
            details=exc.extra or None
        ).model_dump(mode="json")
    )

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": f"{settings.app_name}",
        "version": settings.version,
        "status": "running",
        "environment": "production" if not settings.debug else "development",
        "docs": "/docs",
        "api": "/api/v1"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.version,
        "app": settings.app_name,
        "environment": "production" if not settings.debug else "development"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tiendapos.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
