# tiendapos/modules/minoristas/__init__.py
"""
Módulo de Minoristas - Liquidación diaria
"""

from .router import router
from .service import MinoristaService
from .repository import MinoristaRepository

__all__ = [
    "router",
    "MinoristaService",
    "MinoristaRepository"
]
