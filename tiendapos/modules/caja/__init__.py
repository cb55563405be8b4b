# tiendapos/modules/caja/__init__.py
"""
Módulo de Caja - Arqueo diario

- Apertura y cierre de caja (una abierta por fecha)
- total_ventas actualizado por el motor de ventas
- Recálculo y resumen por método de pago
"""

from .router import router
from .service import CajaService
from .repository import CajaRepository

__all__ = [
    "router",
    "CajaService",
    "CajaRepository"
]
