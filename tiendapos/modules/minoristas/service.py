from typing import Optional, List, Dict
from fastapi import HTTPException
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
import logging

from .repository import MinoristaRepository
from .schemas import (
    VentaMinoristaCreate, VentaMinoristaUpdate, VentaMinoristaResponse,
    VentaMinoristaDetailResponse, VentaMinoristaListResponse, ResumenDiaResponse,
    ArqueoMinoristaAbrirRequest, ArqueoMinoristaCerrarRequest, ArqueoMinoristaResponse,
    ArqueoMinoristaDetailResponse, ArqueoMinoristaListResponse,
    PreregistroMinoristaCreate, PreregistroMinoristaResponse, PreregistroMinoristaListResponse,
    EntregaMinoristaRequest
)
from tiendapos.core.exceptions import (
    ValidationError, NotFoundError, ConflictError, AlreadyOpenError, NotOpenError,
    DependencyFailureError
)
from tiendapos.modules.mayoristas.service import calcular_total
from tiendapos.shared.database.models import (
    VentaMinorista, PreregistroMinorista, Usuario, RolUsuario, EstadoArqueo
)
from tiendapos.shared.schemas.ticket import TicketData, LineaDistribuidor
from tiendapos.shared.utils.fechas import fecha_local_hoy, hora_local, redondear2

logger = logging.getLogger(__name__)

class MinoristaService:
    """Liquidación diaria de minoristas: un arqueo abierto por minorista y día"""

    def __init__(self, db: Session, repository: Optional[MinoristaRepository] = None):
        self.db = db
        self.repository = repository or MinoristaRepository(db)

    # ===== VENTAS =====

    def registrar_venta(self, venta_data: VentaMinoristaCreate) -> VentaMinoristaDetailResponse:
        try:
            self._get_minorista(venta_data.id_minorista)
            producto = self.repository.get_producto(venta_data.id_producto)
            if not producto:
                raise NotFoundError(f"Producto {venta_data.id_producto} no encontrado")
            if venta_data.cantidad_vendida + venta_data.cantidad_aumento <= 0:
                raise ValidationError("La venta debe tener cantidad vendida o aumento")
            fecha = venta_data.fecha or fecha_local_hoy()
            self._verificar_dia_abierto(venta_data.id_minorista, fecha)
            if venta_data.id_pedido:
                self._verificar_pedido(venta_data.id_pedido, venta_data.id_minorista)

            precio = redondear2(
                venta_data.precio_unitario if venta_data.precio_unitario is not None else producto.precio_unitario
            )
            venta = self.repository.create_venta({
                "id_minorista": venta_data.id_minorista,
                "id_producto": venta_data.id_producto,
                "cantidad_vendida": venta_data.cantidad_vendida,
                "cantidad_aumento": venta_data.cantidad_aumento,
                "precio_unitario": precio,
                "total": calcular_total(venta_data.cantidad_vendida, venta_data.cantidad_aumento, precio),
                "fecha": fecha,
                "hora": hora_local(),
                "id_pedido": venta_data.id_pedido,
                "observaciones": venta_data.observaciones
            })
            self.db.commit()
            self.db.refresh(venta)
            logger.info(f"Venta minorista {venta.id} registrada: minorista {venta.id_minorista}, total {venta.total}")

            return VentaMinoristaDetailResponse(
                success=True,
                message="Venta minorista registrada exitosamente",
                venta=VentaMinoristaResponse.model_validate(venta)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error registrando venta minorista")
            raise DependencyFailureError(f"Error registrando venta minorista: {str(e)}")

    def obtener_venta(self, venta_id: int) -> VentaMinoristaDetailResponse:
        return VentaMinoristaDetailResponse(
            success=True,
            message="Venta minorista encontrada",
            venta=VentaMinoristaResponse.model_validate(self._get_venta(venta_id))
        )

    def listar_ventas(
        self,
        id_minorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None
    ) -> VentaMinoristaListResponse:
        ventas = self.repository.get_ventas(id_minorista, fecha_desde, fecha_hasta)
        return VentaMinoristaListResponse(
            success=True,
            message="Ventas minoristas obtenidas exitosamente",
            data=[VentaMinoristaResponse.model_validate(v) for v in ventas],
            total=len(ventas),
            monto_total=redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0")))
        )

    def actualizar_venta(self, venta_id: int, update_data: VentaMinoristaUpdate) -> VentaMinoristaDetailResponse:
        try:
            venta = self._get_venta(venta_id)
            self._verificar_dia_abierto(venta.id_minorista, venta.fecha)

            for key, value in update_data.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(venta, key, value)

            if venta.cantidad_vendida + venta.cantidad_aumento <= 0:
                raise ValidationError("La venta debe tener cantidad vendida o aumento")

            venta.precio_unitario = redondear2(venta.precio_unitario)
            venta.total = calcular_total(venta.cantidad_vendida, venta.cantidad_aumento, venta.precio_unitario)
            self.db.commit()
            self.db.refresh(venta)

            return VentaMinoristaDetailResponse(
                success=True,
                message="Venta minorista actualizada",
                venta=VentaMinoristaResponse.model_validate(venta)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error actualizando venta minorista")
            raise DependencyFailureError(f"Error actualizando venta minorista: {str(e)}")

    def eliminar_venta(self, venta_id: int) -> Dict[str, object]:
        venta = self._get_venta(venta_id)
        self._verificar_dia_abierto(venta.id_minorista, venta.fecha)
        self.repository.delete_venta(venta)
        self.db.commit()
        logger.info(f"Venta minorista {venta_id} eliminada")
        return {"success": True, "message": "Venta minorista eliminada", "id": venta_id}

    def resumen_dia(self, id_minorista: int, fecha: Optional[date] = None) -> ResumenDiaResponse:
        fecha = fecha or fecha_local_hoy()
        ventas = self.repository.get_ventas(id_minorista, fecha, fecha)
        return ResumenDiaResponse(
            success=True,
            message=f"Resumen del {fecha.isoformat()}",
            id_minorista=id_minorista,
            fecha=fecha,
            cantidad_registros=len(ventas),
            unidades_vendidas=sum(v.cantidad_vendida for v in ventas),
            unidades_aumento=sum(v.cantidad_aumento for v in ventas),
            monto_total=redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0")))
        )

    def ticket_ventas(self, id_minorista: int, fecha: Optional[date] = None) -> TicketData:
        minorista = self._get_minorista(id_minorista)
        fecha = fecha or fecha_local_hoy()
        ventas = sorted(self.repository.get_ventas(id_minorista, fecha, fecha), key=lambda v: (v.hora, v.id))
        if not ventas:
            raise NotFoundError(f"No hay ventas del minorista {id_minorista} el {fecha.isoformat()}")

        productos = self.repository.get_productos_por_ids([v.id_producto for v in ventas])
        return TicketData(
            titulo="Liquidación minorista",
            fecha=fecha,
            hora=ventas[-1].hora,
            lineas=[
                LineaDistribuidor(
                    id_producto=v.id_producto,
                    producto=productos[v.id_producto].nombre,
                    cantidad_vendida=v.cantidad_vendida,
                    cantidad_aumento=v.cantidad_aumento,
                    precio=v.precio_unitario,
                    total=v.total
                )
                for v in ventas
            ],
            total=redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0"))),
            vendedor=minorista.nombre
        )

    # ===== ARQUEOS =====

    def abrir_arqueo(self, request: ArqueoMinoristaAbrirRequest) -> ArqueoMinoristaDetailResponse:
        """
        Abrir el arqueo del día de un minorista.

        Los saldos restantes del último arqueo cerrado se copian como saldos
        iniciales y siembran los preregistros del día.
        """
        try:
            self._get_minorista(request.id_minorista)
            fecha = request.fecha or fecha_local_hoy()

            if self.repository.get_arqueo_abierto_del_dia(request.id_minorista, fecha, for_update=True):
                raise AlreadyOpenError(
                    f"El minorista {request.id_minorista} ya tiene un arqueo abierto el {fecha.isoformat()}"
                )
            if self.repository.get_arqueo_cerrado_del_dia(request.id_minorista, fecha):
                raise ValidationError(f"El arqueo del {fecha.isoformat()} ya fue cerrado")

            anterior = self.repository.get_ultimo_arqueo_cerrado(request.id_minorista, antes_de=fecha)
            saldos_iniciales = list(anterior.saldos_restantes or []) if anterior else []

            arqueo = self.repository.create_arqueo({
                "id_minorista": request.id_minorista,
                "fecha": fecha,
                "hora_apertura": hora_local(),
                "ventas_del_periodo": Decimal("0"),
                "saldos_iniciales": saldos_iniciales,
                "saldos_restantes": [],
                "efectivo_recibido": Decimal("0"),
                "observaciones": request.observaciones,
                "estado": EstadoArqueo.ABIERTO.value
            })

            sembrados = self._sembrar_preregistros(request.id_minorista, saldos_iniciales, fecha)

            self.db.commit()
            self.db.refresh(arqueo)
            logger.info(f"Arqueo minorista {arqueo.id} abierto: minorista {arqueo.id_minorista}, {sembrados} preregistros sembrados")

            return ArqueoMinoristaDetailResponse(
                success=True,
                message="Arqueo abierto exitosamente",
                arqueo=ArqueoMinoristaResponse.model_validate(arqueo)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error abriendo arqueo minorista")
            raise DependencyFailureError(f"Error abriendo arqueo: {str(e)}")

    def cerrar_arqueo(self, arqueo_id: int, request: ArqueoMinoristaCerrarRequest) -> ArqueoMinoristaDetailResponse:
        try:
            arqueo = self.repository.get_arqueo(arqueo_id, for_update=True)
            if not arqueo:
                raise NotFoundError("Arqueo no encontrado")
            if arqueo.estado == EstadoArqueo.CERRADO.value:
                raise NotOpenError("El arqueo ya está cerrado")

            productos = self.repository.get_productos_por_ids([s.id_producto for s in request.saldos_restantes])
            faltantes = [s.id_producto for s in request.saldos_restantes if s.id_producto not in productos]
            if faltantes:
                raise NotFoundError(f"Productos no encontrados: {faltantes}")

            ventas = self.repository.get_ventas(arqueo.id_minorista, arqueo.fecha, arqueo.fecha)

            arqueo.hora_cierre = hora_local()
            arqueo.ventas_del_periodo = redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0")))
            arqueo.saldos_restantes = [s.model_dump() for s in request.saldos_restantes]
            arqueo.efectivo_recibido = redondear2(request.efectivo_recibido)
            if request.observaciones is not None:
                arqueo.observaciones = request.observaciones
            arqueo.estado = EstadoArqueo.CERRADO.value

            self.db.commit()
            self.db.refresh(arqueo)
            logger.info(f"Arqueo minorista {arqueo.id} cerrado: ventas {arqueo.ventas_del_periodo}")

            return ArqueoMinoristaDetailResponse(
                success=True,
                message="Arqueo cerrado exitosamente",
                arqueo=ArqueoMinoristaResponse.model_validate(arqueo)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error cerrando arqueo minorista")
            raise DependencyFailureError(f"Error cerrando arqueo: {str(e)}")

    def obtener_arqueo(self, arqueo_id: int) -> ArqueoMinoristaDetailResponse:
        arqueo = self.repository.get_arqueo(arqueo_id)
        if not arqueo:
            raise NotFoundError("Arqueo no encontrado")
        return ArqueoMinoristaDetailResponse(
            success=True,
            message="Arqueo encontrado",
            arqueo=ArqueoMinoristaResponse.model_validate(arqueo)
        )

    def obtener_arqueo_abierto(self, id_minorista: int, fecha: Optional[date] = None) -> ArqueoMinoristaDetailResponse:
        arqueo = self.repository.get_arqueo_abierto_del_dia(id_minorista, fecha or fecha_local_hoy())
        return ArqueoMinoristaDetailResponse(
            success=True,
            message="Arqueo abierto encontrado" if arqueo else "No hay arqueo abierto",
            arqueo=ArqueoMinoristaResponse.model_validate(arqueo) if arqueo else None
        )

    def listar_arqueos(
        self,
        id_minorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        estado: Optional[EstadoArqueo] = None
    ) -> ArqueoMinoristaListResponse:
        arqueos = self.repository.get_arqueos(
            id_minorista, fecha_desde, fecha_hasta, estado.value if estado else None
        )
        return ArqueoMinoristaListResponse(
            success=True,
            message="Arqueos obtenidos exitosamente",
            data=[ArqueoMinoristaResponse.model_validate(a) for a in arqueos],
            total=len(arqueos)
        )

    # ===== PREREGISTROS =====

    def guardar_preregistro(self, data: PreregistroMinoristaCreate) -> PreregistroMinoristaResponse:
        self._get_minorista(data.id_minorista)
        if not self.repository.get_producto(data.id_producto):
            raise NotFoundError(f"Producto {data.id_producto} no encontrado")

        fecha = data.fecha or fecha_local_hoy()
        preregistro = self.repository.find_preregistro(data.id_minorista, data.id_producto, fecha)
        if preregistro:
            preregistro.cantidad = data.cantidad
        else:
            preregistro = self.repository.create_preregistro({
                "id_minorista": data.id_minorista,
                "id_producto": data.id_producto,
                "cantidad": data.cantidad,
                "aumento": 0,
                "fecha": fecha
            })

        self.db.commit()
        self.db.refresh(preregistro)
        return PreregistroMinoristaResponse.model_validate(preregistro)

    def listar_preregistros(
        self,
        fecha: Optional[date] = None,
        id_minorista: Optional[int] = None
    ) -> PreregistroMinoristaListResponse:
        preregistros = self.repository.get_preregistros(fecha or fecha_local_hoy(), id_minorista)
        return PreregistroMinoristaListResponse(
            success=True,
            message="Preregistros obtenidos exitosamente",
            data=[PreregistroMinoristaResponse.model_validate(p) for p in preregistros],
            total=len(preregistros)
        )

    def eliminar_preregistro(self, preregistro_id: int) -> Dict[str, object]:
        preregistro = self.repository.get_preregistro(preregistro_id)
        if not preregistro:
            raise NotFoundError("Preregistro no encontrado")
        self.repository.delete_preregistro(preregistro)
        self.db.commit()
        return {"success": True, "message": "Preregistro eliminado", "id": preregistro_id}

    def aplicar_entrega(self, request: EntregaMinoristaRequest) -> PreregistroMinoristaListResponse:
        """Todo producto entregado debe tener preregistro en la fecha; si no, no se aplica nada"""
        try:
            preregistros = self.sumar_entrega(
                request.id_minorista, request.items, request.fecha or fecha_local_hoy()
            )
            self.db.commit()

            return PreregistroMinoristaListResponse(
                success=True,
                message="Entrega registrada",
                data=[PreregistroMinoristaResponse.model_validate(p) for p in preregistros],
                total=len(preregistros)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error aplicando entrega")
            raise DependencyFailureError(f"Error aplicando entrega: {str(e)}")

    def sumar_entrega(self, id_minorista: int, items, fecha: date) -> List[PreregistroMinorista]:
        """Suma las cantidades al aumento de los preregistros de la fecha, sin commit"""
        encontrados = []
        sin_preregistro: List[int] = []
        for item in items:
            preregistro = self.repository.find_preregistro(
                id_minorista, item.id_producto, fecha, for_update=True
            )
            if preregistro:
                encontrados.append((preregistro, item.cantidad))
            else:
                sin_preregistro.append(item.id_producto)

        if sin_preregistro:
            raise ValidationError(
                f"Productos sin preregistro para el {fecha.isoformat()}: {sin_preregistro}",
                extra={"productos": sin_preregistro}
            )

        for preregistro, cantidad in encontrados:
            preregistro.aumento = (preregistro.aumento or 0) + cantidad
        return [p for p, _ in encontrados]

    def asentar_aumento(
        self,
        id_minorista: int,
        id_producto: int,
        cantidad: int,
        fecha: date,
        id_pedido: Optional[int] = None
    ) -> VentaMinorista:
        self._verificar_dia_abierto(id_minorista, fecha)
        producto = self.repository.get_producto(id_producto)
        if not producto:
            raise NotFoundError(f"Producto {id_producto} no encontrado")

        precio = redondear2(producto.precio_unitario)
        return self.repository.create_venta({
            "id_minorista": id_minorista,
            "id_producto": id_producto,
            "cantidad_vendida": 0,
            "cantidad_aumento": cantidad,
            "precio_unitario": precio,
            "total": calcular_total(0, cantidad, precio),
            "fecha": fecha,
            "hora": hora_local(),
            "id_pedido": id_pedido,
            "observaciones": f"Entrega del pedido {id_pedido}" if id_pedido else None
        })

    # ===== HELPERS =====

    def _get_minorista(self, minorista_id: int) -> Usuario:
        minorista = self.repository.get_minorista(minorista_id)
        if not minorista or minorista.rol != RolUsuario.MINORISTA.value:
            raise NotFoundError(f"Minorista {minorista_id} no encontrado")
        return minorista

    def _get_venta(self, venta_id: int) -> VentaMinorista:
        venta = self.repository.get_venta(venta_id)
        if not venta:
            raise NotFoundError("Venta minorista no encontrada")
        return venta

    def _verificar_dia_abierto(self, id_minorista: int, fecha: date) -> None:
        """Las ventas de un día ya conciliado no se crean, editan ni eliminan"""
        cerrado = self.repository.get_arqueo_cerrado_del_dia(id_minorista, fecha)
        if cerrado:
            raise ConflictError(
                f"El arqueo del {fecha.isoformat()} está cerrado; sus ventas ya no se pueden modificar"
            )

    def _sembrar_preregistros(self, id_minorista: int, saldos: List[dict], fecha: date) -> int:
        sembrados = 0
        for saldo in saldos:
            cantidad = int(saldo.get("cantidad_restante", 0))
            if cantidad <= 0:
                continue
            if self.repository.find_preregistro(id_minorista, saldo["id_producto"], fecha):
                continue
            self.repository.create_preregistro({
                "id_minorista": id_minorista,
                "id_producto": saldo["id_producto"],
                "cantidad": cantidad,
                "aumento": 0,
                "fecha": fecha
            })
            sembrados += 1
        return sembrados

    def _verificar_pedido(self, id_pedido: int, id_distribuidor: int) -> None:
        pedido = self.repository.get_pedido(id_pedido)
        if not pedido or pedido.id_usuario != id_distribuidor:
            raise NotFoundError(f"Pedido {id_pedido} no encontrado para el distribuidor {id_distribuidor}")
