from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional, Dict, Any

from tiendapos.shared.database.models import (
    Pedido, DetallePedido, Producto, Usuario, VentaMayorista, VentaMinorista
)

class PedidoRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_usuario(self, usuario_id: int) -> Optional[Usuario]:
        return self.db.query(Usuario).filter(Usuario.id == usuario_id).first()

    def get_productos_por_ids(self, ids: List[int]) -> Dict[int, Producto]:
        if not ids:
            return {}
        return {p.id: p for p in self.db.query(Producto).filter(Producto.id.in_(ids)).all()}

    # ===== PEDIDOS =====

    def create(self, data: Dict[str, Any], detalles: List[Dict[str, Any]]) -> Pedido:
        """Pedido con sus líneas (flush, sin commit)"""
        pedido = Pedido(**data)
        pedido.detalles = [DetallePedido(**d) for d in detalles]
        self.db.add(pedido)
        self.db.flush()
        return pedido

    def get_by_id(self, pedido_id: int, for_update: bool = False) -> Optional[Pedido]:
        query = self.db.query(Pedido).filter(Pedido.id == pedido_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_all(self, id_usuario: Optional[int] = None, estado: Optional[str] = None) -> List[Pedido]:
        query = self.db.query(Pedido)
        if id_usuario:
            query = query.filter(Pedido.id_usuario == id_usuario)
        if estado:
            query = query.filter(Pedido.estado == estado)
        return query.order_by(desc(Pedido.created_at), desc(Pedido.id)).all()

    def tiene_ventas(self, pedido_id: int) -> bool:
        """Asientos de distribuidor que referencian el pedido"""
        return (
            self.db.query(VentaMayorista.id).filter(VentaMayorista.id_pedido == pedido_id).first() is not None
            or self.db.query(VentaMinorista.id).filter(VentaMinorista.id_pedido == pedido_id).first() is not None
        )

    def delete(self, pedido: Pedido) -> None:
        self.db.delete(pedido)
        self.db.flush()

    # ===== DETALLES =====

    def get_detalle(self, detalle_id: int) -> Optional[DetallePedido]:
        return self.db.query(DetallePedido).filter(DetallePedido.id == detalle_id).first()

    def find_detalle(self, pedido_id: int, producto_id: int) -> Optional[DetallePedido]:
        return self.db.query(DetallePedido).filter(
            DetallePedido.id_pedido == pedido_id,
            DetallePedido.id_producto == producto_id
        ).first()

    def create_detalle(self, data: Dict[str, Any]) -> DetallePedido:
        detalle = DetallePedido(**data)
        self.db.add(detalle)
        self.db.flush()
        return detalle

    def delete_detalle(self, detalle: DetallePedido) -> None:
        self.db.delete(detalle)
        self.db.flush()
