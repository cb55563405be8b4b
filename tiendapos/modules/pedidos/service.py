from typing import Optional, Dict
from fastapi import HTTPException
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
import logging

from .repository import PedidoRepository
from .schemas import (
    PedidoCreate, DetallePedidoItem, PedidoEstadoRequest, PedidoResponse,
    PedidoDetailResponse, PedidoListResponse, DetallePedidoResponse,
    DetallePedidoDetailResponse, PedidoEntregaResponse
)
from tiendapos.core.exceptions import (
    ValidationError, NotFoundError, ConflictError, DependencyFailureError
)
from tiendapos.modules.mayoristas.service import MayoristaService
from tiendapos.modules.minoristas.service import MinoristaService
from tiendapos.shared.database.models import (
    Pedido, DetallePedido, RolUsuario, EstadoPedido
)
from tiendapos.shared.utils.fechas import fecha_local_hoy, redondear2

logger = logging.getLogger(__name__)

TRANSICIONES = {
    EstadoPedido.PENDIENTE.value: {
        EstadoPedido.ENVIADO.value, EstadoPedido.ENTREGADO.value, EstadoPedido.CANCELADO.value
    },
    EstadoPedido.ENVIADO.value: {EstadoPedido.ENTREGADO.value, EstadoPedido.CANCELADO.value},
    EstadoPedido.ENTREGADO.value: set(),
    EstadoPedido.CANCELADO.value: set(),
}

class PedidoService:
    """
    Pedidos de reposición de mayoristas y minoristas.

    Solo un pedido pendiente admite cambios en sus líneas. Al entregarse, cada
    línea suma su cantidad al aumento del preregistro de la fecha y queda un
    asiento de venta del distribuidor con ``id_pedido``; si algún producto no
    tiene preregistro no se aplica nada.
    """

    def __init__(self, db: Session, repository: Optional[PedidoRepository] = None):
        self.db = db
        self.repository = repository or PedidoRepository(db)

    # ===== PEDIDOS =====

    def crear(self, data: PedidoCreate) -> PedidoDetailResponse:
        try:
            usuario = self.repository.get_usuario(data.id_usuario)
            if not usuario or usuario.rol not in (RolUsuario.MAYORISTA.value, RolUsuario.MINORISTA.value):
                raise NotFoundError(f"Distribuidor {data.id_usuario} no encontrado")
            self._verificar_productos([d.id_producto for d in data.detalles])

            pedido = self.repository.create(
                {
                    "id_usuario": usuario.id,
                    "tipo_usuario": usuario.rol,
                    "estado": EstadoPedido.PENDIENTE.value,
                    "fecha_pedido": fecha_local_hoy(),
                    "observaciones": data.observaciones
                },
                [{"id_producto": d.id_producto, "cantidad": d.cantidad} for d in data.detalles]
            )
            self.db.commit()
            self.db.refresh(pedido)
            logger.info(f"Pedido {pedido.id} creado: {pedido.tipo_usuario} {pedido.id_usuario}, {len(pedido.detalles)} líneas")

            return PedidoDetailResponse(
                success=True,
                message="Pedido creado exitosamente",
                pedido=PedidoResponse.model_validate(pedido)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error creando pedido")
            raise DependencyFailureError(f"Error creando pedido: {str(e)}")

    def obtener(self, pedido_id: int) -> PedidoDetailResponse:
        return PedidoDetailResponse(
            success=True,
            message="Pedido encontrado",
            pedido=PedidoResponse.model_validate(self._get(pedido_id))
        )

    def listar(
        self,
        id_usuario: Optional[int] = None,
        estado: Optional[EstadoPedido] = None
    ) -> PedidoListResponse:
        pedidos = self.repository.get_all(id_usuario, estado.value if estado else None)
        return PedidoListResponse(
            success=True,
            message="Pedidos obtenidos exitosamente",
            data=[PedidoResponse.model_validate(p) for p in pedidos],
            total=len(pedidos)
        )

    def cambiar_estado(self, pedido_id: int, request: PedidoEstadoRequest) -> PedidoDetailResponse:
        """Marcar como enviado o cancelado"""
        if request.estado == EstadoPedido.ENTREGADO:
            raise ValidationError("Un pedido se marca como entregado al registrar su entrega")

        pedido = self._get(pedido_id, for_update=True)
        self._verificar_transicion(pedido, request.estado.value)
        pedido.estado = request.estado.value
        if request.observaciones is not None:
            pedido.observaciones = request.observaciones
        self.db.commit()
        self.db.refresh(pedido)
        logger.info(f"Pedido {pedido_id} -> {pedido.estado}")

        return PedidoDetailResponse(
            success=True,
            message=f"Pedido {pedido.estado}",
            pedido=PedidoResponse.model_validate(pedido)
        )

    def entregar(self, pedido_id: int, fecha: Optional[date] = None) -> PedidoEntregaResponse:
        """
        Entregar el pedido contra los preregistros de ``fecha`` (hoy por defecto).

        Suma cada línea al aumento del preregistro y registra un asiento de
        aumento del distribuidor por línea. Todo o nada.
        """
        try:
            pedido = self._get(pedido_id, for_update=True)
            self._verificar_transicion(pedido, EstadoPedido.ENTREGADO.value)
            if not pedido.detalles:
                raise ValidationError("El pedido no tiene productos")

            fecha = fecha or fecha_local_hoy()
            distribuidor = (
                MayoristaService(self.db) if pedido.tipo_usuario == RolUsuario.MAYORISTA.value
                else MinoristaService(self.db)
            )
            distribuidor.sumar_entrega(pedido.id_usuario, pedido.detalles, fecha)
            ventas = [
                distribuidor.asentar_aumento(
                    pedido.id_usuario, detalle.id_producto, detalle.cantidad, fecha, id_pedido=pedido.id
                )
                for detalle in pedido.detalles
            ]

            pedido.estado = EstadoPedido.ENTREGADO.value
            pedido.fecha_entrega = fecha
            self.db.commit()
            self.db.refresh(pedido)

            total = redondear2(sum((v.total for v in ventas), Decimal("0")))
            logger.info(f"Pedido {pedido_id} entregado: {len(ventas)} asientos, total {total}")

            return PedidoEntregaResponse(
                success=True,
                message="Pedido entregado",
                pedido=PedidoResponse.model_validate(pedido),
                ventas_registradas=[v.id for v in ventas],
                total_aumento=total
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error entregando pedido")
            raise DependencyFailureError(f"Error entregando pedido: {str(e)}")

    def eliminar(self, pedido_id: int) -> Dict[str, object]:
        """Los pedidos entregados conservan sus asientos y no se eliminan"""
        pedido = self._get(pedido_id, for_update=True)
        if pedido.estado == EstadoPedido.ENTREGADO.value or self.repository.tiene_ventas(pedido.id):
            raise ConflictError("El pedido tiene asientos de venta y no se puede eliminar")
        self.repository.delete(pedido)
        self.db.commit()
        return {"success": True, "message": "Pedido eliminado", "id": pedido_id}

    # ===== DETALLES =====

    def agregar_detalle(self, pedido_id: int, item: DetallePedidoItem) -> DetallePedidoDetailResponse:
        """Si el producto ya está en el pedido se reemplaza su cantidad"""
        pedido = self._get_pendiente(pedido_id)
        self._verificar_productos([item.id_producto])

        detalle = self.repository.find_detalle(pedido.id, item.id_producto)
        if detalle:
            detalle.cantidad = item.cantidad
        else:
            detalle = self.repository.create_detalle({
                "id_pedido": pedido.id,
                "id_producto": item.id_producto,
                "cantidad": item.cantidad
            })
        self.db.commit()
        self.db.refresh(detalle)

        return DetallePedidoDetailResponse(
            success=True,
            message="Producto agregado al pedido",
            detalle=DetallePedidoResponse.model_validate(detalle)
        )

    def actualizar_detalle(self, pedido_id: int, detalle_id: int, cantidad: int) -> DetallePedidoDetailResponse:
        pedido = self._get_pendiente(pedido_id)
        detalle = self._get_detalle(pedido, detalle_id)
        detalle.cantidad = cantidad
        self.db.commit()
        self.db.refresh(detalle)

        return DetallePedidoDetailResponse(
            success=True,
            message="Cantidad actualizada",
            detalle=DetallePedidoResponse.model_validate(detalle)
        )

    def eliminar_detalle(self, pedido_id: int, detalle_id: int) -> Dict[str, object]:
        pedido = self._get_pendiente(pedido_id)
        detalle = self._get_detalle(pedido, detalle_id)
        if len(pedido.detalles) <= 1:
            raise ValidationError("El pedido debe conservar al menos un producto")
        self.repository.delete_detalle(detalle)
        self.db.commit()
        return {"success": True, "message": "Producto quitado del pedido", "id": detalle_id}

    # ===== HELPERS =====

    def _get(self, pedido_id: int, for_update: bool = False) -> Pedido:
        pedido = self.repository.get_by_id(pedido_id, for_update=for_update)
        if not pedido:
            raise NotFoundError("Pedido no encontrado")
        return pedido

    def _get_pendiente(self, pedido_id: int) -> Pedido:
        pedido = self._get(pedido_id, for_update=True)
        if pedido.estado != EstadoPedido.PENDIENTE.value:
            raise ConflictError(f"El pedido está {pedido.estado}; solo se editan pedidos pendientes")
        return pedido

    def _get_detalle(self, pedido: Pedido, detalle_id: int) -> DetallePedido:
        detalle = self.repository.get_detalle(detalle_id)
        if not detalle or detalle.id_pedido != pedido.id:
            raise NotFoundError("Línea de pedido no encontrada")
        return detalle

    def _verificar_transicion(self, pedido: Pedido, estado: str) -> None:
        if estado not in TRANSICIONES[pedido.estado]:
            raise ConflictError(f"El pedido está {pedido.estado}; no puede pasar a {estado}")

    def _verificar_productos(self, ids) -> None:
        productos = self.repository.get_productos_por_ids(list(ids))
        faltantes = [i for i in ids if i not in productos]
        if faltantes:
            raise NotFoundError(f"Productos no encontrados: {faltantes}")
        inactivos = [p.codigo for p in productos.values() if not p.is_active]
        if inactivos:
            raise ValidationError(f"Productos inactivos: {inactivos}", extra={"productos": inactivos})
