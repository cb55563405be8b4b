from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, desc
from typing import List, Optional, Dict, Any
from datetime import date

from tiendapos.shared.database.models import (
    Venta, DetalleVenta, Producto, Cliente, EstadoVenta
)

class VentaRepository:
    def __init__(self, db: Session):
        self.db = db

    # ===== VENTAS =====

    def create_venta(self, venta_data: Dict[str, Any]) -> Venta:
        """Insertar venta (flush para obtener id, sin commit)"""
        venta = Venta(**venta_data)
        self.db.add(venta)
        self.db.flush()
        return venta

    def create_detalles(self, detalles_data: List[Dict[str, Any]]) -> List[DetalleVenta]:
        """Insertar todos los detalles en un solo lote"""
        detalles = [DetalleVenta(**d) for d in detalles_data]
        self.db.add_all(detalles)
        self.db.flush()
        return detalles

    def get_venta(self, venta_id: int, for_update: bool = False) -> Optional[Venta]:
        query = self.db.query(Venta).options(selectinload(Venta.detalles)).filter(Venta.id == venta_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_detalles(self, venta_id: int) -> List[DetalleVenta]:
        return self.db.query(DetalleVenta).filter(
            DetalleVenta.id_venta == venta_id
        ).order_by(DetalleVenta.id).all()

    def get_ventas(
        self,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        id_vendedor: Optional[int] = None,
        estado: Optional[str] = None,
        metodo_pago: Optional[str] = None
    ) -> List[Venta]:
        query = self.db.query(Venta).options(selectinload(Venta.detalles))

        if fecha_desde:
            query = query.filter(Venta.fecha >= fecha_desde)
        if fecha_hasta:
            query = query.filter(Venta.fecha <= fecha_hasta)
        if id_vendedor:
            query = query.filter(Venta.id_vendedor == id_vendedor)
        if estado:
            query = query.filter(Venta.estado == estado)
        if metodo_pago:
            query = query.filter(Venta.metodo_pago == metodo_pago)

        return query.order_by(desc(Venta.fecha), desc(Venta.hora), desc(Venta.id)).all()

    def get_estadisticas_productos(
        self,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None
    ) -> List[tuple]:
        """(id, codigo, nombre, cantidad, monto) de ventas completadas, por cantidad desc"""
        cantidad = func.sum(DetalleVenta.cantidad).label("cantidad")
        query = self.db.query(
            Producto.id,
            Producto.codigo,
            Producto.nombre,
            cantidad,
            func.sum(DetalleVenta.subtotal).label("monto")
        ).join(
            DetalleVenta, DetalleVenta.id_producto == Producto.id
        ).join(
            Venta, Venta.id == DetalleVenta.id_venta
        ).filter(
            Venta.estado == EstadoVenta.COMPLETADA.value
        )

        if fecha_desde:
            query = query.filter(Venta.fecha >= fecha_desde)
        if fecha_hasta:
            query = query.filter(Venta.fecha <= fecha_hasta)

        return query.group_by(Producto.id, Producto.codigo, Producto.nombre).order_by(desc(cantidad)).all()

    def get_productos_por_ids(self, ids: List[int]) -> Dict[int, Producto]:
        if not ids:
            return {}
        productos = self.db.query(Producto).filter(Producto.id.in_(ids)).all()
        return {p.id: p for p in productos}

    # ===== CLIENTES =====

    def create_cliente(self, cliente_data: Dict[str, Any]) -> Cliente:
        cliente = Cliente(**cliente_data)
        self.db.add(cliente)
        self.db.flush()
        return cliente

    def get_cliente(self, cliente_id: int) -> Optional[Cliente]:
        return self.db.query(Cliente).filter(Cliente.id == cliente_id).first()

    def get_cliente_por_documento(self, ci_nit: str) -> Optional[Cliente]:
        return self.db.query(Cliente).filter(Cliente.ci_nit == ci_nit).first()

    def get_clientes(self, busqueda: Optional[str] = None) -> List[Cliente]:
        query = self.db.query(Cliente)
        if busqueda:
            query = query.filter(Cliente.nombre.ilike(f"%{busqueda}%"))
        return query.order_by(Cliente.nombre).all()
