from datetime import date
from dateutil.relativedelta import relativedelta
from decimal import Decimal
from typing import Optional
import math

from tiendapos.config.settings import settings
from tiendapos.shared.database.models import Venta, EstadoCredito
from tiendapos.shared.utils.fechas import redondear2
from .schemas import CalculoCredito

class CreditCalculator:
    """
    Recalcula en lectura el interés y el estado de una venta a crédito.

    Los campos persistidos (monto_interes, total_con_interes, monto_pagado,
    estado_credito) son una proyección; el valor correcto es siempre el que
    devuelve ``recalcular`` para la fecha ``hoy``.
    """

    @staticmethod
    def calcular_fecha_vencimiento(fecha_venta: date, meses_credito: int) -> date:
        """Fecha de venta + N meses calendario"""
        return fecha_venta + relativedelta(months=meses_credito)

    @staticmethod
    def meses_transcurridos(fecha_venta: date, hoy: date) -> int:
        """ceil(días / 30), mínimo 1: el interés corre desde el primer mes"""
        dias = (hoy - fecha_venta).days
        meses = math.ceil(dias / settings.dias_por_mes_interes)
        return max(1, meses)

    @staticmethod
    def calcular_interes(
        total: Decimal,
        cuota_inicial: Decimal,
        tasa_interes: Decimal,
        meses: int,
        interes_eximido: bool = False
    ) -> Decimal:
        """Interés simple mensual sobre (total - cuota inicial)"""
        if interes_eximido or not tasa_interes or tasa_interes <= 0:
            return Decimal("0.00")

        base = Decimal(total) - Decimal(cuota_inicial or 0)
        if base <= 0:
            return Decimal("0.00")

        return redondear2(base * (Decimal(tasa_interes) / Decimal(100)) * meses)

    @staticmethod
    def determinar_estado(
        monto_pagado: Decimal,
        total_con_interes: Decimal,
        fecha_vencimiento: Optional[date],
        hoy: date
    ) -> EstadoCredito:
        if monto_pagado >= total_con_interes - settings.tolerancia_credito_pagado:
            return EstadoCredito.PAGADO
        if fecha_vencimiento and hoy > fecha_vencimiento:
            return EstadoCredito.VENCIDO
        # La cuota inicial cuenta como primer pago
        if monto_pagado > 0:
            return EstadoCredito.PARCIAL
        return EstadoCredito.PENDIENTE

    @classmethod
    def recalcular(cls, venta: Venta, suma_pagos: Decimal, hoy: date) -> CalculoCredito:
        """
        Estado de crédito de una venta para la fecha ``hoy``.

        total_con_interes = total + interés × cuotas (recargo fijo por cuota)
        monto_pagado = cuota_inicial + Σ pagos
        """
        total = Decimal(venta.total)
        cuota_inicial = Decimal(venta.cuota_inicial or 0)
        cuotas = venta.meses_credito or 1
        meses = cls.meses_transcurridos(venta.fecha, hoy)

        monto_interes = cls.calcular_interes(
            total, cuota_inicial, Decimal(venta.tasa_interes or 0), meses, bool(venta.interes_eximido)
        )
        total_con_interes = redondear2(total + monto_interes * cuotas)
        monto_pagado = redondear2(cuota_inicial + Decimal(suma_pagos or 0))
        saldo_pendiente = redondear2(total_con_interes - monto_pagado)

        return CalculoCredito(
            id_venta=venta.id,
            meses_transcurridos=meses,
            monto_interes=monto_interes,
            total_con_interes=total_con_interes,
            monto_pagado=monto_pagado,
            saldo_pendiente=saldo_pendiente,
            estado_credito=cls.determinar_estado(
                monto_pagado, total_con_interes, venta.fecha_vencimiento, hoy
            ),
            interes_eximido=bool(venta.interes_eximido),
            fecha_vencimiento=venta.fecha_vencimiento
        )
