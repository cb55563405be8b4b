# tiendapos/modules/categorias/__init__.py
"""
Módulo de Categorías de productos (nombre único, baja lógica)
"""

from .router import router
from .service import CategoriaService
from .repository import CategoriaRepository

__all__ = [
    "router",
    "CategoriaService",
    "CategoriaRepository"
]
