# tiendapos/modules/notificaciones/__init__.py
"""
Módulo de Notificaciones de arqueo (pendiente -> vista -> resuelta)
"""

from .router import router
from .service import NotificacionService
from .repository import NotificacionRepository

__all__ = [
    "router",
    "NotificacionService",
    "NotificacionRepository"
]
