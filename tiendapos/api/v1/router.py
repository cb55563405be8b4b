# tiendapos/api/v1/router.py
from fastapi import APIRouter

from tiendapos.config.settings import settings
from tiendapos.api.v1.auth import router as auth_router
from tiendapos.modules.productos import router as productos_router
from tiendapos.modules.ventas import router as ventas_router
from tiendapos.modules.creditos import router as creditos_router
from tiendapos.modules.caja import router as caja_router
from tiendapos.modules.mayoristas import router as mayoristas_router
from tiendapos.modules.minoristas import router as minoristas_router
from tiendapos.modules.categorias import router as categorias_router
from tiendapos.modules.notificaciones import router as notificaciones_router
from tiendapos.modules.pedidos import router as pedidos_router

# Crear router principal de la API v1
api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(
    productos_router,
    prefix="/productos",
    tags=["Productos e Inventario"]
)

api_router.include_router(
    categorias_router,
    prefix="/categorias",
    tags=["Categorías"]
)

api_router.include_router(
    ventas_router,
    prefix="/ventas",
    tags=["Ventas"]
)

api_router.include_router(
    creditos_router,
    prefix="/creditos",
    tags=["Créditos"]
)

api_router.include_router(
    caja_router,
    prefix="/caja",
    tags=["Caja"]
)

api_router.include_router(
    mayoristas_router,
    prefix="/mayoristas",
    tags=["Mayoristas"]
)

api_router.include_router(
    minoristas_router,
    prefix="/minoristas",
    tags=["Minoristas"]
)

api_router.include_router(
    pedidos_router,
    prefix="/pedidos",
    tags=["Pedidos"]
)

api_router.include_router(
    notificaciones_router,
    prefix="/notificaciones-arqueo",
    tags=["Notificaciones de arqueo"]
)

@api_router.get("/")
async def api_root():
    return {
        "message": f"{settings.app_name} v1",
        "version": settings.version,
        "status": "active",
        "docs": "/docs",
        "available_endpoints": {
            "authentication": "/api/v1/auth",
            "productos": "/api/v1/productos",
            "categorias": "/api/v1/categorias",
            "ventas": "/api/v1/ventas",
            "creditos": "/api/v1/creditos",
            "caja": "/api/v1/caja",
            "mayoristas": "/api/v1/mayoristas",
            "minoristas": "/api/v1/minoristas",
            "pedidos": "/api/v1/pedidos",
            "notificaciones": "/api/v1/notificaciones-arqueo"
        }
    }

@api_router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.version,
        "architecture": "modular_monolith"
    }
