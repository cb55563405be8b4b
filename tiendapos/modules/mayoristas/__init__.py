# tiendapos/modules/mayoristas/__init__.py
"""
Módulo de Mayoristas - Liquidación por período

- Asientos de venta (vendida + aumento) x precio por mayor
- Arqueos con arrastre de saldos restantes
- Preregistros y entregas
- Pagos pendientes / verificados
"""

from .router import router
from .service import MayoristaService
from .repository import MayoristaRepository

__all__ = [
    "router",
    "MayoristaService",
    "MayoristaRepository"
]
