# tiendapos/modules/creditos/__init__.py
"""
Módulo de Créditos - Interés y cuotas

- calculator.py: recálculo en lectura del interés y estado del crédito
- Pagos de cuotas con validación contra el saldo recalculado
- Exención de interés
"""

from .router import router
from .service import CreditoService
from .repository import CreditoRepository
from .calculator import CreditCalculator

__all__ = [
    "router",
    "CreditoService",
    "CreditoRepository",
    "CreditCalculator"
]
