from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional, Dict, Any
from datetime import date

from tiendapos.shared.database.models import (
    VentaMinorista, ArqueoMinorista, PreregistroMinorista, Pedido, Producto, Usuario, EstadoArqueo
)

class MinoristaRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_minorista(self, minorista_id: int) -> Optional[Usuario]:
        return self.db.query(Usuario).filter(Usuario.id == minorista_id).first()

    def get_producto(self, producto_id: int) -> Optional[Producto]:
        return self.db.query(Producto).filter(Producto.id == producto_id).first()

    def get_productos_por_ids(self, ids: List[int]) -> Dict[int, Producto]:
        if not ids:
            return {}
        return {p.id: p for p in self.db.query(Producto).filter(Producto.id.in_(ids)).all()}

    def get_pedido(self, pedido_id: int) -> Optional[Pedido]:
        return self.db.query(Pedido).filter(Pedido.id == pedido_id).first()

    # ===== VENTAS =====

    def create_venta(self, venta_data: Dict[str, Any]) -> VentaMinorista:
        venta = VentaMinorista(**venta_data)
        self.db.add(venta)
        self.db.flush()
        return venta

    def get_venta(self, venta_id: int) -> Optional[VentaMinorista]:
        return self.db.query(VentaMinorista).filter(VentaMinorista.id == venta_id).first()

    def get_ventas(
        self,
        id_minorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None
    ) -> List[VentaMinorista]:
        query = self.db.query(VentaMinorista)
        if id_minorista:
            query = query.filter(VentaMinorista.id_minorista == id_minorista)
        if fecha_desde:
            query = query.filter(VentaMinorista.fecha >= fecha_desde)
        if fecha_hasta:
            query = query.filter(VentaMinorista.fecha <= fecha_hasta)
        return query.order_by(desc(VentaMinorista.fecha), desc(VentaMinorista.hora), desc(VentaMinorista.id)).all()

    def delete_venta(self, venta: VentaMinorista) -> None:
        self.db.delete(venta)
        self.db.flush()

    # ===== ARQUEOS =====

    def create_arqueo(self, arqueo_data: Dict[str, Any]) -> ArqueoMinorista:
        arqueo = ArqueoMinorista(**arqueo_data)
        self.db.add(arqueo)
        self.db.flush()
        return arqueo

    def get_arqueo(self, arqueo_id: int, for_update: bool = False) -> Optional[ArqueoMinorista]:
        query = self.db.query(ArqueoMinorista).filter(ArqueoMinorista.id == arqueo_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_arqueo_abierto_del_dia(
        self,
        id_minorista: int,
        fecha: date,
        for_update: bool = False
    ) -> Optional[ArqueoMinorista]:
        query = self.db.query(ArqueoMinorista).filter(
            ArqueoMinorista.id_minorista == id_minorista,
            ArqueoMinorista.fecha == fecha,
            ArqueoMinorista.estado == EstadoArqueo.ABIERTO.value
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_ultimo_arqueo_cerrado(self, id_minorista: int, antes_de: Optional[date] = None) -> Optional[ArqueoMinorista]:
        query = self.db.query(ArqueoMinorista).filter(
            ArqueoMinorista.id_minorista == id_minorista,
            ArqueoMinorista.estado == EstadoArqueo.CERRADO.value
        )
        if antes_de:
            query = query.filter(ArqueoMinorista.fecha <= antes_de)
        return query.order_by(desc(ArqueoMinorista.fecha), desc(ArqueoMinorista.id)).first()

    def get_arqueo_cerrado_del_dia(self, id_minorista: int, fecha: date) -> Optional[ArqueoMinorista]:
        return self.db.query(ArqueoMinorista).filter(
            ArqueoMinorista.id_minorista == id_minorista,
            ArqueoMinorista.fecha == fecha,
            ArqueoMinorista.estado == EstadoArqueo.CERRADO.value
        ).first()

    def get_arqueos(
        self,
        id_minorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        estado: Optional[str] = None
    ) -> List[ArqueoMinorista]:
        query = self.db.query(ArqueoMinorista)
        if id_minorista:
            query = query.filter(ArqueoMinorista.id_minorista == id_minorista)
        if fecha_desde:
            query = query.filter(ArqueoMinorista.fecha >= fecha_desde)
        if fecha_hasta:
            query = query.filter(ArqueoMinorista.fecha <= fecha_hasta)
        if estado:
            query = query.filter(ArqueoMinorista.estado == estado)
        return query.order_by(desc(ArqueoMinorista.fecha), desc(ArqueoMinorista.id)).all()

    # ===== PREREGISTROS =====

    def get_preregistro(self, preregistro_id: int) -> Optional[PreregistroMinorista]:
        return self.db.query(PreregistroMinorista).filter(PreregistroMinorista.id == preregistro_id).first()

    def find_preregistro(
        self,
        id_minorista: int,
        id_producto: int,
        fecha: date,
        for_update: bool = False
    ) -> Optional[PreregistroMinorista]:
        query = self.db.query(PreregistroMinorista).filter(
            PreregistroMinorista.id_minorista == id_minorista,
            PreregistroMinorista.id_producto == id_producto,
            PreregistroMinorista.fecha == fecha
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create_preregistro(self, preregistro_data: Dict[str, Any]) -> PreregistroMinorista:
        preregistro = PreregistroMinorista(**preregistro_data)
        self.db.add(preregistro)
        self.db.flush()
        return preregistro

    def get_preregistros(self, fecha: date, id_minorista: Optional[int] = None) -> List[PreregistroMinorista]:
        query = self.db.query(PreregistroMinorista).filter(PreregistroMinorista.fecha == fecha)
        if id_minorista:
            query = query.filter(PreregistroMinorista.id_minorista == id_minorista)
        return query.order_by(PreregistroMinorista.id_minorista, PreregistroMinorista.id_producto).all()

    def delete_preregistro(self, preregistro: PreregistroMinorista) -> None:
        self.db.delete(preregistro)
        self.db.flush()
