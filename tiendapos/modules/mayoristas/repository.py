from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional, Dict, Any
from datetime import date

from tiendapos.shared.database.models import (
    VentaMayorista, ArqueoMayorista, PreregistroMayorista, SaldoRestanteMayorista,
    PagoMayorista, Pedido, Producto, Usuario, EstadoArqueo
)

class MayoristaRepository:
    def __init__(self, db: Session):
        self.db = db

    # ===== COMUNES =====

    def get_mayorista(self, mayorista_id: int) -> Optional[Usuario]:
        return self.db.query(Usuario).filter(Usuario.id == mayorista_id).first()

    def get_producto(self, producto_id: int) -> Optional[Producto]:
        return self.db.query(Producto).filter(Producto.id == producto_id).first()

    def get_productos_por_ids(self, ids: List[int]) -> Dict[int, Producto]:
        if not ids:
            return {}
        return {p.id: p for p in self.db.query(Producto).filter(Producto.id.in_(ids)).all()}

    def get_pedido(self, pedido_id: int) -> Optional[Pedido]:
        return self.db.query(Pedido).filter(Pedido.id == pedido_id).first()

    # ===== VENTAS =====

    def create_venta(self, venta_data: Dict[str, Any]) -> VentaMayorista:
        venta = VentaMayorista(**venta_data)
        self.db.add(venta)
        self.db.flush()
        return venta

    def get_venta(self, venta_id: int) -> Optional[VentaMayorista]:
        return self.db.query(VentaMayorista).filter(VentaMayorista.id == venta_id).first()

    def get_ventas(
        self,
        id_mayorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        id_producto: Optional[int] = None
    ) -> List[VentaMayorista]:
        query = self.db.query(VentaMayorista)

        if id_mayorista:
            query = query.filter(VentaMayorista.id_mayorista == id_mayorista)
        if fecha_desde:
            query = query.filter(VentaMayorista.fecha >= fecha_desde)
        if fecha_hasta:
            query = query.filter(VentaMayorista.fecha <= fecha_hasta)
        if id_producto:
            query = query.filter(VentaMayorista.id_producto == id_producto)

        return query.order_by(desc(VentaMayorista.fecha), desc(VentaMayorista.hora), desc(VentaMayorista.id)).all()

    def delete_venta(self, venta: VentaMayorista) -> None:
        self.db.delete(venta)
        self.db.flush()

    # ===== ARQUEOS =====

    def create_arqueo(self, arqueo_data: Dict[str, Any]) -> ArqueoMayorista:
        arqueo = ArqueoMayorista(**arqueo_data)
        self.db.add(arqueo)
        self.db.flush()
        return arqueo

    def get_arqueo(self, arqueo_id: int, for_update: bool = False) -> Optional[ArqueoMayorista]:
        query = self.db.query(ArqueoMayorista).filter(ArqueoMayorista.id == arqueo_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_arqueo_abierto(self, id_mayorista: int, for_update: bool = False) -> Optional[ArqueoMayorista]:
        query = self.db.query(ArqueoMayorista).filter(
            ArqueoMayorista.id_mayorista == id_mayorista,
            ArqueoMayorista.estado == EstadoArqueo.ABIERTO.value
        )
        if for_update:
            query = query.with_for_update()
        return query.order_by(desc(ArqueoMayorista.fecha_inicio), desc(ArqueoMayorista.id)).first()

    def get_ultimo_arqueo_cerrado(self, id_mayorista: int) -> Optional[ArqueoMayorista]:
        return self.db.query(ArqueoMayorista).filter(
            ArqueoMayorista.id_mayorista == id_mayorista,
            ArqueoMayorista.estado == EstadoArqueo.CERRADO.value
        ).order_by(desc(ArqueoMayorista.fecha_fin), desc(ArqueoMayorista.id)).first()

    def get_arqueos(
        self,
        id_mayorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        estado: Optional[str] = None
    ) -> List[ArqueoMayorista]:
        query = self.db.query(ArqueoMayorista)

        if id_mayorista:
            query = query.filter(ArqueoMayorista.id_mayorista == id_mayorista)
        if fecha_desde:
            query = query.filter(ArqueoMayorista.fecha_inicio >= fecha_desde)
        if fecha_hasta:
            query = query.filter(ArqueoMayorista.fecha_fin <= fecha_hasta)
        if estado:
            query = query.filter(ArqueoMayorista.estado == estado)

        return query.order_by(desc(ArqueoMayorista.fecha_inicio), desc(ArqueoMayorista.id)).all()

    # ===== SALDOS RESTANTES =====

    def create_saldos(self, saldos_data: List[Dict[str, Any]]) -> List[SaldoRestanteMayorista]:
        saldos = [SaldoRestanteMayorista(**s) for s in saldos_data]
        self.db.add_all(saldos)
        self.db.flush()
        return saldos

    def get_saldos(
        self,
        id_mayorista: int,
        fecha: Optional[date] = None,
        id_arqueo: Optional[int] = None
    ) -> List[SaldoRestanteMayorista]:
        query = self.db.query(SaldoRestanteMayorista).filter(
            SaldoRestanteMayorista.id_mayorista == id_mayorista
        )
        if fecha:
            query = query.filter(SaldoRestanteMayorista.fecha == fecha)
        if id_arqueo:
            query = query.filter(SaldoRestanteMayorista.id_arqueo == id_arqueo)
        return query.order_by(desc(SaldoRestanteMayorista.fecha), SaldoRestanteMayorista.id_producto).all()

    # ===== PREREGISTROS =====

    def get_preregistro(self, preregistro_id: int) -> Optional[PreregistroMayorista]:
        return self.db.query(PreregistroMayorista).filter(PreregistroMayorista.id == preregistro_id).first()

    def find_preregistro(
        self,
        id_mayorista: int,
        id_producto: int,
        fecha: date,
        for_update: bool = False
    ) -> Optional[PreregistroMayorista]:
        query = self.db.query(PreregistroMayorista).filter(
            PreregistroMayorista.id_mayorista == id_mayorista,
            PreregistroMayorista.id_producto == id_producto,
            PreregistroMayorista.fecha == fecha
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create_preregistro(self, preregistro_data: Dict[str, Any]) -> PreregistroMayorista:
        preregistro = PreregistroMayorista(**preregistro_data)
        self.db.add(preregistro)
        self.db.flush()
        return preregistro

    def get_preregistros(self, fecha: date, id_mayorista: Optional[int] = None) -> List[PreregistroMayorista]:
        query = self.db.query(PreregistroMayorista).filter(PreregistroMayorista.fecha == fecha)
        if id_mayorista:
            query = query.filter(PreregistroMayorista.id_mayorista == id_mayorista)
        return query.order_by(PreregistroMayorista.id_mayorista, PreregistroMayorista.id_producto).all()

    def delete_preregistro(self, preregistro: PreregistroMayorista) -> None:
        self.db.delete(preregistro)
        self.db.flush()

    # ===== PAGOS =====

    def create_pago(self, pago_data: Dict[str, Any]) -> PagoMayorista:
        pago = PagoMayorista(**pago_data)
        self.db.add(pago)
        self.db.flush()
        return pago

    def get_pago(self, pago_id: int, for_update: bool = False) -> Optional[PagoMayorista]:
        query = self.db.query(PagoMayorista).filter(PagoMayorista.id == pago_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_pago_por_venta(self, venta_id: int) -> Optional[PagoMayorista]:
        return self.db.query(PagoMayorista).filter(PagoMayorista.id_venta == venta_id).first()

    def get_pagos(self, id_mayorista: Optional[int] = None, estado: Optional[str] = None) -> List[PagoMayorista]:
        query = self.db.query(PagoMayorista)
        if id_mayorista:
            query = query.filter(PagoMayorista.id_mayorista == id_mayorista)
        if estado:
            query = query.filter(PagoMayorista.estado == estado)
        return query.order_by(desc(PagoMayorista.fecha_pago), desc(PagoMayorista.id)).all()

    def get_arqueo_cerrado_en_fecha(self, id_mayorista: int, fecha: date) -> Optional[ArqueoMayorista]:
        """Arqueo cerrado cuyo período incluye la fecha"""
        return self.db.query(ArqueoMayorista).filter(
            ArqueoMayorista.id_mayorista == id_mayorista,
            ArqueoMayorista.estado == EstadoArqueo.CERRADO.value,
            ArqueoMayorista.fecha_inicio <= fecha,
            ArqueoMayorista.fecha_fin >= fecha
        ).first()
