# tiendapos/modules/pedidos/__init__.py
"""
Módulo de Pedidos de distribuidores (pendiente -> enviado -> entregado | cancelado)
"""

from .router import router
from .service import PedidoService
from .repository import PedidoRepository

__all__ = [
    "router",
    "PedidoService",
    "PedidoRepository"
]
