from typing import Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
from datetime import date
import logging

from .repository import ProductoRepository
from .schemas import (
    ProductoCreate, ProductoResponse, ProductoDetailResponse, ProductoListResponse,
    AjusteStockRequest, MovimientoCreate, MovimientoResponse, MovimientoListResponse,
    ConsistenciaStockResponse
)
from tiendapos.core.exceptions import NotFoundError, ConflictError, ValidationError, DependencyFailureError
from tiendapos.shared.database.models import (
    EstadoProducto, TipoMovimiento, MotivoMovimiento
)
from tiendapos.shared.services.inventory_service import InventoryService
from tiendapos.shared.utils.fechas import fecha_local_hoy

logger = logging.getLogger(__name__)

class ProductoService:
    def __init__(
        self,
        db: Session,
        repository: Optional[ProductoRepository] = None,
        inventory: Optional[InventoryService] = None
    ):
        self.db = db
        self.repository = repository or ProductoRepository(db)
        self.inventory = inventory or InventoryService(db)

    # ===== PRODUCTOS =====

    def crear_producto(self, producto_data: ProductoCreate, id_usuario: int) -> ProductoDetailResponse:
        """
        Crear producto con su stock inicial.

        El stock inicial se registra como un movimiento de compra para que el
        ledger de movimientos cuadre con stock_actual desde el alta.
        """
        try:
            if self.repository.get_by_codigo(producto_data.codigo):
                raise ConflictError(f'Ya existe un producto con el código "{producto_data.codigo}"')
            if producto_data.id_categoria:
                self._validar_categoria(producto_data.id_categoria)

            data = producto_data.model_dump(exclude={"stock_inicial"})
            data["stock_actual"] = producto_data.stock_inicial
            producto = self.repository.create_producto(data)

            if producto_data.stock_inicial > 0:
                self.inventory.agregar_movimiento(
                    producto.id,
                    TipoMovimiento.ENTRADA,
                    producto_data.stock_inicial,
                    MotivoMovimiento.COMPRA,
                    id_usuario,
                    fecha_local_hoy(),
                    observacion="Stock inicial"
                )

            self.db.commit()
            self.db.refresh(producto)
            logger.info(f"Producto {producto.id} ({producto.codigo}) creado con stock {producto.stock_actual}")

            return ProductoDetailResponse(
                success=True,
                message="Producto creado exitosamente",
                producto=ProductoResponse.model_validate(producto)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error creando producto")
            raise DependencyFailureError(f"Error creando producto: {str(e)}")

    def obtener_producto(self, producto_id: int) -> ProductoDetailResponse:
        producto = self.repository.get_by_id(producto_id)
        if not producto:
            raise NotFoundError("Producto no encontrado")
        return ProductoDetailResponse(
            success=True,
            message="Producto encontrado",
            producto=ProductoResponse.model_validate(producto)
        )

    def listar_productos(
        self,
        solo_activos: bool = False,
        busqueda: Optional[str] = None,
        id_categoria: Optional[int] = None
    ) -> ProductoListResponse:
        productos = self.repository.get_productos(solo_activos, busqueda, id_categoria)
        return ProductoListResponse(
            success=True,
            message="Productos obtenidos exitosamente",
            data=[ProductoResponse.model_validate(p) for p in productos],
            total=len(productos)
        )

    def productos_stock_bajo(self) -> ProductoListResponse:
        productos = self.repository.get_productos_stock_bajo()
        return ProductoListResponse(
            success=True,
            message=f"{len(productos)} productos con stock bajo",
            data=[ProductoResponse.model_validate(p) for p in productos],
            total=len(productos)
        )

    def cambiar_estado(self, producto_id: int) -> ProductoDetailResponse:
        """Alternar activo/inactivo"""
        producto = self.repository.get_by_id(producto_id)
        if not producto:
            raise NotFoundError("Producto no encontrado")

        producto.estado = (
            EstadoProducto.INACTIVO.value if producto.is_active else EstadoProducto.ACTIVO.value
        )
        self.db.commit()
        self.db.refresh(producto)

        return ProductoDetailResponse(
            success=True,
            message=f"Producto {'activado' if producto.is_active else 'desactivado'}",
            producto=ProductoResponse.model_validate(producto)
        )

    def ajustar_stock(
        self,
        producto_id: int,
        ajuste: AjusteStockRequest,
        id_usuario: int
    ) -> ProductoDetailResponse:
        producto = self.inventory.ajustar_stock(
            producto_id, ajuste.nueva_cantidad, id_usuario, ajuste.observacion
        )
        return ProductoDetailResponse(
            success=True,
            message="Stock ajustado",
            producto=ProductoResponse.model_validate(producto)
        )

    def verificar_consistencia(self, producto_id: int) -> ConsistenciaStockResponse:
        """Comparar stock_actual contra la suma con signo de movimientos no anulados"""
        producto = self.repository.get_by_id(producto_id)
        if not producto:
            raise NotFoundError("Producto no encontrado")

        stock_movimientos = self.inventory.stock_desde_movimientos(producto_id)
        diferencia = producto.stock_actual - stock_movimientos

        if diferencia != 0:
            logger.warning(
                f"Stock inconsistente en producto {producto_id}: "
                f"cache={producto.stock_actual} ledger={stock_movimientos}"
            )

        return ConsistenciaStockResponse(
            success=True,
            message="Stock consistente" if diferencia == 0 else "Stock inconsistente",
            id_producto=producto_id,
            stock_actual=producto.stock_actual,
            stock_movimientos=stock_movimientos,
            diferencia=diferencia,
            consistente=diferencia == 0
        )

    # ===== MOVIMIENTOS =====

    def registrar_movimiento(self, movimiento_data: MovimientoCreate, id_usuario: int) -> MovimientoResponse:
        try:
            movimiento = self.inventory.aplicar_movimiento(
                movimiento_data.id_producto,
                movimiento_data.tipo_movimiento,
                movimiento_data.cantidad,
                movimiento_data.motivo,
                id_usuario,
                movimiento_data.observacion
            )
            self.db.commit()
            self.db.refresh(movimiento)
            logger.info(
                f"Movimiento {movimiento.id}: {movimiento.tipo_movimiento} {movimiento.cantidad} "
                f"producto {movimiento.id_producto} ({movimiento.motivo})"
            )
            return MovimientoResponse.model_validate(movimiento)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error registrando movimiento")
            raise DependencyFailureError(f"Error registrando movimiento: {str(e)}")

    def anular_movimiento(self, movimiento_id: int, id_usuario: int, motivo: str) -> MovimientoResponse:
        try:
            movimiento = self.inventory.anular_movimiento(movimiento_id, id_usuario, motivo)
            self.db.commit()
            self.db.refresh(movimiento)
            logger.info(f"Movimiento {movimiento_id} anulado por usuario {id_usuario}")
            return MovimientoResponse.model_validate(movimiento)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error anulando movimiento")
            raise DependencyFailureError(f"Error anulando movimiento: {str(e)}")

    def listar_movimientos(
        self,
        id_producto: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None
    ) -> MovimientoListResponse:
        movimientos = self.repository.get_movimientos(id_producto, fecha_desde, fecha_hasta)
        return MovimientoListResponse(
            success=True,
            message="Movimientos obtenidos exitosamente",
            data=[MovimientoResponse.model_validate(m) for m in movimientos],
            total=len(movimientos)
        )

    # ===== HELPERS =====

    def _validar_categoria(self, categoria_id: int) -> None:
        categoria = self.repository.get_categoria(categoria_id)
        if not categoria:
            raise NotFoundError("Categoría no encontrada")
        if not categoria.is_active:
            raise ValidationError(f'La categoría "{categoria.nombre}" está inactiva')
