from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from typing import List, Optional, Dict, Tuple
from datetime import date
from decimal import Decimal

from tiendapos.shared.database.models import (
    ArqueoCaja, Venta, PagoCredito, EstadoArqueo, EstadoVenta, MetodoPago
)

class CajaRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_arqueo(self, arqueo_data: dict) -> ArqueoCaja:
        arqueo = ArqueoCaja(**arqueo_data)
        self.db.add(arqueo)
        self.db.flush()
        return arqueo

    def get_by_id(self, arqueo_id: int, for_update: bool = False) -> Optional[ArqueoCaja]:
        query = self.db.query(ArqueoCaja).filter(ArqueoCaja.id == arqueo_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_abierta(self, fecha: date, for_update: bool = False) -> Optional[ArqueoCaja]:
        """Caja ABIERTA de una fecha (a lo sumo una)"""
        query = self.db.query(ArqueoCaja).filter(
            ArqueoCaja.fecha == fecha,
            ArqueoCaja.estado == EstadoArqueo.ABIERTO.value
        )
        if for_update:
            query = query.with_for_update()
        return query.order_by(desc(ArqueoCaja.id)).first()

    def get_all(self) -> List[ArqueoCaja]:
        return self.db.query(ArqueoCaja).order_by(
            desc(ArqueoCaja.fecha), desc(ArqueoCaja.hora_apertura)
        ).all()

    def total_ventas_caja(self, fecha: date) -> Decimal:
        """Suma de ventas completadas no crédito de una fecha"""
        total = self.db.query(func.coalesce(func.sum(Venta.total), 0)).filter(
            Venta.fecha == fecha,
            Venta.estado == EstadoVenta.COMPLETADA.value,
            Venta.metodo_pago != MetodoPago.CREDITO.value
        ).scalar()
        return Decimal(str(total or 0))

    def totales_por_metodo(self, fecha: date) -> Dict[str, Tuple[Decimal, int]]:
        rows = self.db.query(
            Venta.metodo_pago,
            func.coalesce(func.sum(Venta.total), 0),
            func.count(Venta.id)
        ).filter(
            Venta.fecha == fecha,
            Venta.estado == EstadoVenta.COMPLETADA.value
        ).group_by(Venta.metodo_pago).all()
        return {metodo: (Decimal(str(total)), count) for metodo, total, count in rows}

    def ingresos_credito(self, fecha: date) -> Tuple[Decimal, Decimal]:
        """Cuotas iniciales de ventas a crédito de la fecha y pagos de cuotas cobrados ese día"""
        cuotas_iniciales = self.db.query(func.coalesce(func.sum(Venta.cuota_inicial), 0)).filter(
            Venta.fecha == fecha,
            Venta.estado == EstadoVenta.COMPLETADA.value,
            Venta.metodo_pago == MetodoPago.CREDITO.value
        ).scalar()
        pagos = self.db.query(func.coalesce(func.sum(PagoCredito.monto_pagado), 0)).join(
            Venta, PagoCredito.id_venta == Venta.id
        ).filter(
            PagoCredito.fecha_pago == fecha,
            Venta.estado == EstadoVenta.COMPLETADA.value
        ).scalar()
        return Decimal(str(cuotas_iniciales or 0)), Decimal(str(pagos or 0))
