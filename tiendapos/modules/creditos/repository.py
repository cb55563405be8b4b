from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, desc
from typing import List, Optional
from decimal import Decimal

from tiendapos.shared.database.models import Venta, PagoCredito, MetodoPago, EstadoVenta

class CreditoRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_venta(self, venta_id: int, for_update: bool = False) -> Optional[Venta]:
        query = self.db.query(Venta).filter(Venta.id == venta_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_ventas_credito(self, id_cliente: Optional[int] = None) -> List[Venta]:
        """Ventas a crédito completadas (las anuladas no tienen saldo)"""
        query = self.db.query(Venta).options(joinedload(Venta.cliente)).filter(
            Venta.metodo_pago == MetodoPago.CREDITO.value,
            Venta.estado == EstadoVenta.COMPLETADA.value
        )
        if id_cliente:
            query = query.filter(Venta.id_cliente == id_cliente)
        return query.order_by(desc(Venta.fecha), desc(Venta.id)).all()

    def suma_pagos(self, venta_id: int, excluir_pago_id: Optional[int] = None) -> Decimal:
        query = self.db.query(func.coalesce(func.sum(PagoCredito.monto_pagado), 0)).filter(
            PagoCredito.id_venta == venta_id
        )
        if excluir_pago_id:
            query = query.filter(PagoCredito.id != excluir_pago_id)
        return Decimal(str(query.scalar() or 0))

    def suma_pagos_por_venta(self, venta_ids: List[int]) -> dict:
        """{id_venta: suma} en una sola consulta"""
        if not venta_ids:
            return {}
        rows = self.db.query(
            PagoCredito.id_venta,
            func.sum(PagoCredito.monto_pagado)
        ).filter(
            PagoCredito.id_venta.in_(venta_ids)
        ).group_by(PagoCredito.id_venta).all()
        return {id_venta: Decimal(str(total or 0)) for id_venta, total in rows}

    def get_pago(self, pago_id: int) -> Optional[PagoCredito]:
        return self.db.query(PagoCredito).filter(PagoCredito.id == pago_id).first()

    def get_pagos(self, venta_id: int) -> List[PagoCredito]:
        return self.db.query(PagoCredito).filter(
            PagoCredito.id_venta == venta_id
        ).order_by(PagoCredito.numero_cuota, PagoCredito.fecha_pago).all()

    def cuota_pagada(self, venta_id: int, numero_cuota: int) -> bool:
        return self.db.query(PagoCredito.id).filter(
            PagoCredito.id_venta == venta_id,
            PagoCredito.numero_cuota == numero_cuota
        ).first() is not None

    def create_pago(self, pago_data: dict) -> PagoCredito:
        pago = PagoCredito(**pago_data)
        self.db.add(pago)
        self.db.flush()
        return pago

    def delete_pago(self, pago: PagoCredito) -> None:
        self.db.delete(pago)
        self.db.flush()
