from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from typing import List, Optional
from datetime import date

from tiendapos.shared.database.models import Producto, MovimientoInventario, EstadoProducto, Categoria

class ProductoRepository:
    def __init__(self, db: Session):
        self.db = db

    # ===== PRODUCTOS =====

    def create_producto(self, producto_data: dict) -> Producto:
        """Insertar producto (flush, sin commit)"""
        producto = Producto(**producto_data)
        self.db.add(producto)
        self.db.flush()
        return producto

    def get_by_id(self, producto_id: int) -> Optional[Producto]:
        return self.db.query(Producto).filter(Producto.id == producto_id).first()

    def get_by_codigo(self, codigo: str) -> Optional[Producto]:
        return self.db.query(Producto).filter(Producto.codigo == codigo).first()

    def get_categoria(self, categoria_id: int) -> Optional[Categoria]:
        return self.db.query(Categoria).filter(Categoria.id == categoria_id).first()

    def get_productos(
        self,
        solo_activos: bool = False,
        busqueda: Optional[str] = None,
        id_categoria: Optional[int] = None
    ) -> List[Producto]:
        """Listar productos con búsqueda opcional por nombre o código"""
        query = self.db.query(Producto)

        if id_categoria:
            query = query.filter(Producto.id_categoria == id_categoria)

        if solo_activos:
            query = query.filter(Producto.estado == EstadoProducto.ACTIVO.value)
        if busqueda:
            patron = f"%{busqueda}%"
            query = query.filter(or_(Producto.nombre.ilike(patron), Producto.codigo.ilike(patron)))

        return query.order_by(Producto.nombre).all()

    def get_productos_stock_bajo(self) -> List[Producto]:
        """Productos activos con stock_actual <= stock_minimo"""
        return self.db.query(Producto).filter(
            Producto.estado == EstadoProducto.ACTIVO.value,
            Producto.stock_actual <= Producto.stock_minimo
        ).order_by(Producto.stock_actual).all()

    # ===== MOVIMIENTOS =====

    def get_movimiento(self, movimiento_id: int) -> Optional[MovimientoInventario]:
        return self.db.query(MovimientoInventario).filter(
            MovimientoInventario.id == movimiento_id
        ).first()

    def get_movimientos(
        self,
        id_producto: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        incluir_anulados: bool = True
    ) -> List[MovimientoInventario]:
        query = self.db.query(MovimientoInventario)

        if id_producto:
            query = query.filter(MovimientoInventario.id_producto == id_producto)
        if fecha_desde:
            query = query.filter(MovimientoInventario.fecha >= fecha_desde)
        if fecha_hasta:
            query = query.filter(MovimientoInventario.fecha <= fecha_hasta)
        if not incluir_anulados:
            query = query.filter(MovimientoInventario.anulado.is_(False))

        return query.order_by(desc(MovimientoInventario.fecha), desc(MovimientoInventario.id)).all()
