from typing import List, Dict, Any, Tuple, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func, case
from sqlalchemy.exc import SQLAlchemyError
from datetime import date, datetime
import logging

from tiendapos.core.exceptions import (
    NotFoundError, ValidationError, ConflictError, InsufficientStockError,
    MovementInsertFailedError
)
from tiendapos.shared.database.models import (
    Producto, MovimientoInventario, TipoMovimiento, MotivoMovimiento
)
from tiendapos.shared.utils.fechas import fecha_local_hoy

logger = logging.getLogger(__name__)

class InventoryService:
    """
    Ledger de stock por producto.

    ``productos.stock_actual`` es una proyección cacheada; la fuente de verdad
    es la suma con signo de los movimientos no anulados.
    """

    def __init__(self, db: Session):
        self.db = db

    def validar_y_reservar_stock(
        self,
        items: List[Dict[str, Any]]
    ) -> List[Tuple[Producto, int]]:
        """
        Verificar stock de todos los items ANTES de cualquier escritura.

        - SELECT FOR UPDATE bloquea las filas de producto hasta el commit
        - Items repetidos del mismo producto se suman
        - Todo o nada: el primer producto sin stock aborta la validación

        Args:
            items: [{id_producto, cantidad}]

        Returns:
            List[(Producto, cantidad_total)] en el orden de aparición

        Raises:
            NotFoundError: producto inexistente
            ValidationError: producto inactivo o cantidad inválida
            InsufficientStockError: stock_actual < cantidad solicitada
        """
        cantidades: Dict[int, int] = {}
        for item in items:
            if item['cantidad'] <= 0:
                raise ValidationError("La cantidad debe ser mayor a 0")
            cantidades[item['id_producto']] = cantidades.get(item['id_producto'], 0) + item['cantidad']

        reservados = []
        for id_producto, cantidad in cantidades.items():
            producto = self.db.query(Producto).filter(
                Producto.id == id_producto
            ).with_for_update().first()

            if not producto:
                raise NotFoundError(f"Producto {id_producto} no encontrado")

            if not producto.is_active:
                raise ValidationError(f'El producto "{producto.nombre}" está inactivo')

            if producto.stock_actual < cantidad:
                raise InsufficientStockError(producto.nombre, producto.stock_actual, cantidad)

            reservados.append((producto, cantidad))

        return reservados

    def descontar_por_venta(
        self,
        reservados: List[Tuple[Producto, int]],
        id_venta: int,
        id_usuario: int,
        fecha: date
    ) -> None:
        """Descontar stock YA RESERVADO y registrar movimientos de venta (sin commit)"""
        for producto, cantidad in reservados:
            producto.stock_actual -= cantidad
            self.agregar_movimiento(
                producto.id,
                TipoMovimiento.SALIDA,
                cantidad,
                MotivoMovimiento.VENTA,
                id_usuario,
                fecha,
                observacion=f"Venta #{id_venta}",
                id_venta=id_venta
            )

    def revertir_por_venta(
        self,
        items: List[Dict[str, Any]],
        id_venta: int,
        id_usuario: int,
        motivo: str
    ) -> None:
        """
        Devolver al stock las cantidades de una venta anulada (sin commit).

        Si falla el registro de algún movimiento se hace rollback de la
        transacción completa, incluidos los incrementos ya aplicados.
        """
        fecha = fecha_local_hoy()
        for item in items:
            producto = self.db.query(Producto).filter(
                Producto.id == item['id_producto']
            ).with_for_update().first()
            if not producto:
                raise NotFoundError(f"Producto {item['id_producto']} no encontrado")

            producto.stock_actual += item['cantidad']

            try:
                self.agregar_movimiento(
                    producto.id,
                    TipoMovimiento.ENTRADA,
                    item['cantidad'],
                    MotivoMovimiento.DEVOLUCION,
                    id_usuario,
                    fecha,
                    observacion=(
                        f"Anulación de venta #{id_venta} por usuario {id_usuario}. "
                        f"Motivo: {motivo}"
                    ),
                    id_venta=id_venta
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error registrando devolución de producto {producto.id}: {e}")
                raise MovementInsertFailedError(
                    f'Error al registrar el movimiento de devolución de "{producto.nombre}"'
                )

    def ajustar_stock(
        self,
        id_producto: int,
        nueva_cantidad: int,
        id_usuario: int,
        observacion: Optional[str] = None
    ) -> Producto:
        """
        Fijar el stock de un producto a una cantidad absoluta.

        El nuevo stock se confirma primero. El movimiento de ajuste se registra
        después; si falla solo se registra en el log y el stock NO se revierte.
        """
        if nueva_cantidad < 0:
            raise ValidationError("El stock no puede ser negativo")

        producto = self.db.query(Producto).filter(
            Producto.id == id_producto
        ).with_for_update().first()
        if not producto:
            raise NotFoundError("Producto no encontrado")

        delta = nueva_cantidad - producto.stock_actual
        producto.stock_actual = nueva_cantidad
        self.db.commit()

        if delta != 0:
            try:
                self.agregar_movimiento(
                    producto.id,
                    TipoMovimiento.ENTRADA if delta > 0 else TipoMovimiento.SALIDA,
                    abs(delta),
                    MotivoMovimiento.AJUSTE,
                    id_usuario,
                    fecha_local_hoy(),
                    observacion=observacion or "Ajuste manual de stock"
                )
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Stock de producto {producto.id} ajustado a {nueva_cantidad} "
                    f"pero falló el registro del movimiento: {e}"
                )

        self.db.refresh(producto)
        return producto

    def aplicar_movimiento(
        self,
        id_producto: int,
        tipo: TipoMovimiento,
        cantidad: int,
        motivo: MotivoMovimiento,
        id_usuario: int,
        observacion: Optional[str] = None
    ) -> MovimientoInventario:
        """Movimiento manual: aplica el delta con signo al stock y lo registra (sin commit)"""
        if motivo == MotivoMovimiento.VENTA:
            raise ValidationError("Los movimientos de venta solo se generan al registrar una venta")
        if cantidad <= 0:
            raise ValidationError("La cantidad debe ser mayor a 0")

        producto = self.db.query(Producto).filter(
            Producto.id == id_producto
        ).with_for_update().first()
        if not producto:
            raise NotFoundError("Producto no encontrado")
        if not producto.is_active:
            raise ValidationError(f'El producto "{producto.nombre}" está inactivo')

        if tipo == TipoMovimiento.SALIDA:
            if producto.stock_actual < cantidad:
                raise InsufficientStockError(producto.nombre, producto.stock_actual, cantidad)
            producto.stock_actual -= cantidad
        else:
            producto.stock_actual += cantidad

        return self.agregar_movimiento(
            producto.id, tipo, cantidad, motivo, id_usuario, fecha_local_hoy(), observacion
        )

    def anular_movimiento(
        self,
        id_movimiento: int,
        id_usuario: int,
        motivo_anulacion: str
    ) -> MovimientoInventario:
        """
        Anular un movimiento manual revirtiendo su efecto en el stock (sin commit).

        Los movimientos generados por una venta no se anulan aquí: se anula la venta.
        """
        movimiento = self.db.query(MovimientoInventario).filter(
            MovimientoInventario.id == id_movimiento
        ).first()
        if not movimiento:
            raise NotFoundError("Movimiento no encontrado")
        if movimiento.anulado:
            raise ConflictError("El movimiento ya está anulado")
        if movimiento.id_venta is not None or movimiento.motivo == MotivoMovimiento.VENTA.value:
            raise ValidationError(
                "Los movimientos asociados a una venta se revierten anulando la venta"
            )

        producto = self.db.query(Producto).filter(
            Producto.id == movimiento.id_producto
        ).with_for_update().first()

        # Revertir el efecto original
        nuevo_stock = producto.stock_actual - movimiento.cantidad_con_signo
        if nuevo_stock < 0:
            raise InsufficientStockError(producto.nombre, producto.stock_actual, movimiento.cantidad)
        producto.stock_actual = nuevo_stock

        movimiento.anulado = True
        movimiento.id_usuario_anulacion = id_usuario
        movimiento.motivo_anulacion = motivo_anulacion
        movimiento.fecha_anulacion = datetime.now()
        self.db.flush()
        return movimiento

    def stock_desde_movimientos(self, id_producto: int) -> int:
        """Suma con signo de los movimientos no anulados de un producto"""
        signed = case(
            (MovimientoInventario.tipo_movimiento == TipoMovimiento.ENTRADA.value, MovimientoInventario.cantidad),
            else_=-MovimientoInventario.cantidad
        )
        total = self.db.query(func.coalesce(func.sum(signed), 0)).filter(
            MovimientoInventario.id_producto == id_producto,
            MovimientoInventario.anulado.is_(False)
        ).scalar()
        return int(total or 0)

    def agregar_movimiento(
        self,
        id_producto: int,
        tipo: TipoMovimiento,
        cantidad: int,
        motivo: MotivoMovimiento,
        id_usuario: Optional[int],
        fecha: date,
        observacion: Optional[str] = None,
        id_venta: Optional[int] = None
    ) -> MovimientoInventario:
        movimiento = MovimientoInventario(
            id_producto=id_producto,
            tipo_movimiento=tipo.value,
            cantidad=cantidad,
            motivo=motivo.value,
            fecha=fecha,
            id_usuario=id_usuario,
            id_venta=id_venta,
            observacion=observacion
        )
        self.db.add(movimiento)
        self.db.flush()
        return movimiento
