# tiendapos/shared/utils/fechas.py
"""Fecha y hora locales capturadas en el punto de llamada (sin zona horaria)."""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP


def fecha_local_hoy() -> date:
    return datetime.now().date()


def hora_local() -> str:
    """Hora local en formato HH:MM"""
    return datetime.now().strftime("%H:%M")


def redondear2(valor) -> Decimal:
    """Redondeo monetario a 2 decimales (mitad hacia arriba)"""
    return Decimal(str(valor)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
