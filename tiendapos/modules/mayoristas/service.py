from typing import Optional, List, Dict
from fastapi import HTTPException
from sqlalchemy.orm import Session
from datetime import date, datetime
from decimal import Decimal
import logging

from .repository import MayoristaRepository
from .schemas import (
    VentaMayoristaCreate, VentaMayoristaUpdate, VentaMayoristaResponse,
    VentaMayoristaDetailResponse, VentaMayoristaListResponse, ResumenPeriodoResponse,
    ArqueoMayoristaAbrirRequest, ArqueoMayoristaCerrarRequest, ArqueoMayoristaResponse,
    ArqueoMayoristaDetailResponse, ArqueoMayoristaListResponse,
    SaldoRestanteResponse, SaldoRestanteListResponse,
    PreregistroMayoristaCreate, PreregistroMayoristaResponse, PreregistroMayoristaListResponse,
    EntregaMayoristaRequest,
    PagoMayoristaCreate, PagoMayoristaVerificarRequest, PagoMayoristaUpdate,
    PagoMayoristaResponse, PagoMayoristaDetailResponse, PagoMayoristaListResponse
)
from tiendapos.core.exceptions import (
    ValidationError, NotFoundError, ConflictError, AlreadyOpenError, NotOpenError,
    DependencyFailureError
)
from tiendapos.shared.database.models import (
    VentaMayorista, PagoMayorista, PreregistroMayorista, Usuario,
    RolUsuario, EstadoArqueo, EstadoPagoMayorista
)
from tiendapos.shared.schemas.ticket import TicketData, LineaDistribuidor
from tiendapos.shared.utils.fechas import fecha_local_hoy, hora_local, redondear2

logger = logging.getLogger(__name__)

def calcular_total(cantidad_vendida: int, cantidad_aumento: int, precio) -> Decimal:
    """total = (vendida + aumento) x precio, redondeado a 2 decimales"""
    return redondear2(Decimal(cantidad_vendida + cantidad_aumento) * Decimal(str(precio)))

class MayoristaService:
    """
    Liquidación de mayoristas por período.

    - Ventas: asientos con total calculado al escribir
    - Arqueos: abierto -> cerrado, uno abierto por mayorista; al cerrar se
      guardan los saldos restantes que siembran los preregistros del
      siguiente período
    - Pagos: pendiente -> verificado, sin vuelta atrás
    """

    def __init__(self, db: Session, repository: Optional[MayoristaRepository] = None):
        self.db = db
        self.repository = repository or MayoristaRepository(db)

    # ===== VENTAS =====

    def registrar_venta(self, venta_data: VentaMayoristaCreate) -> VentaMayoristaDetailResponse:
        try:
            self._get_mayorista(venta_data.id_mayorista)
            producto = self.repository.get_producto(venta_data.id_producto)
            if not producto:
                raise NotFoundError(f"Producto {venta_data.id_producto} no encontrado")

            if venta_data.cantidad_vendida + venta_data.cantidad_aumento <= 0:
                raise ValidationError("La venta debe tener cantidad vendida o aumento")

            fecha = venta_data.fecha or fecha_local_hoy()
            self._verificar_periodo_abierto(venta_data.id_mayorista, fecha)
            if venta_data.id_pedido:
                self._verificar_pedido(venta_data.id_pedido, venta_data.id_mayorista)

            precio = (
                redondear2(venta_data.precio_por_mayor) if venta_data.precio_por_mayor is not None
                else self._precio_por_defecto(producto)
            )

            venta = self.repository.create_venta({
                "id_mayorista": venta_data.id_mayorista,
                "id_producto": venta_data.id_producto,
                "cantidad_vendida": venta_data.cantidad_vendida,
                "cantidad_aumento": venta_data.cantidad_aumento,
                "precio_por_mayor": precio,
                "total": calcular_total(venta_data.cantidad_vendida, venta_data.cantidad_aumento, precio),
                "fecha": fecha,
                "hora": hora_local(),
                "id_pedido": venta_data.id_pedido,
                "observaciones": venta_data.observaciones
            })
            self.db.commit()
            self.db.refresh(venta)
            logger.info(f"Venta mayorista {venta.id} registrada: mayorista {venta.id_mayorista}, total {venta.total}")

            return VentaMayoristaDetailResponse(
                success=True,
                message="Venta mayorista registrada exitosamente",
                venta=VentaMayoristaResponse.model_validate(venta)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error registrando venta mayorista")
            raise DependencyFailureError(f"Error registrando venta mayorista: {str(e)}")

    def obtener_venta(self, venta_id: int) -> VentaMayoristaDetailResponse:
        return VentaMayoristaDetailResponse(
            success=True,
            message="Venta mayorista encontrada",
            venta=VentaMayoristaResponse.model_validate(self._get_venta(venta_id))
        )

    def listar_ventas(
        self,
        id_mayorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        id_producto: Optional[int] = None
    ) -> VentaMayoristaListResponse:
        ventas = self.repository.get_ventas(id_mayorista, fecha_desde, fecha_hasta, id_producto)
        return VentaMayoristaListResponse(
            success=True,
            message="Ventas mayoristas obtenidas exitosamente",
            data=[VentaMayoristaResponse.model_validate(v) for v in ventas],
            total=len(ventas),
            monto_total=redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0")))
        )

    def actualizar_venta(self, venta_id: int, update_data: VentaMayoristaUpdate) -> VentaMayoristaDetailResponse:
        """
        Actualizar cantidades/precio recalculando el total.

        Con un pago pendiente, su monto esperado se actualiza también; con un
        pago verificado la venta ya no se puede modificar.
        """
        try:
            venta = self._get_venta(venta_id)
            self._verificar_periodo_abierto(venta.id_mayorista, venta.fecha)
            pago = self.repository.get_pago_por_venta(venta.id)
            if pago and pago.estado == EstadoPagoMayorista.VERIFICADO.value:
                raise ConflictError("La venta tiene un pago verificado y no se puede modificar")

            for key, value in update_data.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(venta, key, value)

            if venta.cantidad_vendida + venta.cantidad_aumento <= 0:
                raise ValidationError("La venta debe tener cantidad vendida o aumento")

            venta.precio_por_mayor = redondear2(venta.precio_por_mayor)
            venta.total = calcular_total(venta.cantidad_vendida, venta.cantidad_aumento, venta.precio_por_mayor)
            if pago:
                pago.monto_esperado = venta.total

            self.db.commit()
            self.db.refresh(venta)

            return VentaMayoristaDetailResponse(
                success=True,
                message="Venta mayorista actualizada",
                venta=VentaMayoristaResponse.model_validate(venta)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error actualizando venta mayorista")
            raise DependencyFailureError(f"Error actualizando venta mayorista: {str(e)}")

    def eliminar_venta(self, venta_id: int) -> Dict[str, object]:
        venta = self._get_venta(venta_id)
        self._verificar_periodo_abierto(venta.id_mayorista, venta.fecha)
        if self.repository.get_pago_por_venta(venta.id):
            raise ConflictError("La venta tiene un pago registrado y no se puede eliminar")

        self.repository.delete_venta(venta)
        self.db.commit()
        logger.info(f"Venta mayorista {venta_id} eliminada")
        return {"success": True, "message": "Venta mayorista eliminada", "id": venta_id}

    def resumen_periodo(self, id_mayorista: int, fecha_desde: date, fecha_hasta: date) -> ResumenPeriodoResponse:
        if fecha_hasta < fecha_desde:
            raise ValidationError("La fecha final no puede ser anterior a la inicial")

        ventas = self.repository.get_ventas(id_mayorista, fecha_desde, fecha_hasta)
        return ResumenPeriodoResponse(
            success=True,
            message="Resumen del período",
            id_mayorista=id_mayorista,
            fecha_desde=fecha_desde,
            fecha_hasta=fecha_hasta,
            cantidad_registros=len(ventas),
            unidades_vendidas=sum(v.cantidad_vendida for v in ventas),
            unidades_aumento=sum(v.cantidad_aumento for v in ventas),
            monto_ventas=redondear2(sum(
                (Decimal(v.cantidad_vendida) * Decimal(v.precio_por_mayor) for v in ventas), Decimal("0")
            )),
            monto_total=redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0")))
        )

    def ticket_ventas(self, id_mayorista: int, fecha: Optional[date] = None) -> TicketData:
        """Ticket con los asientos de un mayorista en una fecha"""
        mayorista = self._get_mayorista(id_mayorista)
        fecha = fecha or fecha_local_hoy()
        ventas = self.repository.get_ventas(id_mayorista, fecha, fecha)
        if not ventas:
            raise NotFoundError(f"No hay ventas del mayorista {id_mayorista} el {fecha.isoformat()}")

        productos = self.repository.get_productos_por_ids([v.id_producto for v in ventas])
        ventas = sorted(ventas, key=lambda v: (v.hora, v.id))
        return TicketData(
            titulo="Liquidación mayorista",
            fecha=fecha,
            hora=ventas[-1].hora,
            lineas=[
                LineaDistribuidor(
                    id_producto=v.id_producto,
                    producto=productos[v.id_producto].nombre,
                    cantidad_vendida=v.cantidad_vendida,
                    cantidad_aumento=v.cantidad_aumento,
                    precio=v.precio_por_mayor,
                    total=v.total
                )
                for v in ventas
            ],
            total=redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0"))),
            vendedor=mayorista.nombre
        )

    # ===== ARQUEOS =====

    def abrir_arqueo(self, request: ArqueoMayoristaAbrirRequest) -> ArqueoMayoristaDetailResponse:
        """
        Abrir el período de un mayorista.

        Los saldos restantes del último arqueo cerrado pasan a ser los saldos
        iniciales, y cada producto con saldo > 0 recibe un preregistro para
        la fecha de inicio si aún no lo tiene.
        """
        try:
            self._get_mayorista(request.id_mayorista)

            # Verificación por consulta; SELECT FOR UPDATE reduce la ventana de carrera
            if self.repository.get_arqueo_abierto(request.id_mayorista, for_update=True):
                raise AlreadyOpenError(f"El mayorista {request.id_mayorista} ya tiene un arqueo abierto")

            fecha_inicio = request.fecha_inicio or fecha_local_hoy()
            anterior = self.repository.get_ultimo_arqueo_cerrado(request.id_mayorista)
            if anterior and fecha_inicio <= anterior.fecha_fin:
                raise ValidationError(
                    f"El período debe iniciar después del {anterior.fecha_fin.isoformat()}, "
                    f"cierre del arqueo {anterior.id}"
                )
            saldos_iniciales = list(anterior.saldos_restantes or []) if anterior else []

            arqueo = self.repository.create_arqueo({
                "id_mayorista": request.id_mayorista,
                "fecha_inicio": fecha_inicio,
                "fecha_fin": fecha_inicio,
                "hora_apertura": hora_local(),
                "ventas_del_periodo": Decimal("0"),
                "saldos_iniciales": saldos_iniciales,
                "saldos_restantes": [],
                "efectivo_recibido": Decimal("0"),
                "observaciones": request.observaciones,
                "estado": EstadoArqueo.ABIERTO.value
            })

            sembrados = self._sembrar_preregistros(request.id_mayorista, saldos_iniciales, fecha_inicio)

            self.db.commit()
            self.db.refresh(arqueo)
            logger.info(
                f"Arqueo mayorista {arqueo.id} abierto: mayorista {arqueo.id_mayorista}, "
                f"{len(saldos_iniciales)} saldos iniciales, {sembrados} preregistros sembrados"
            )

            return ArqueoMayoristaDetailResponse(
                success=True,
                message="Arqueo abierto exitosamente",
                arqueo=ArqueoMayoristaResponse.model_validate(arqueo)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error abriendo arqueo mayorista")
            raise DependencyFailureError(f"Error abriendo arqueo: {str(e)}")

    def cerrar_arqueo(self, arqueo_id: int, request: ArqueoMayoristaCerrarRequest) -> ArqueoMayoristaDetailResponse:
        """
        Cerrar el período: ventas_del_periodo se agrega de las ventas entre
        fecha_inicio y fecha_fin y los saldos restantes quedan guardados en el
        arqueo y como filas de saldo para el siguiente período.
        """
        try:
            arqueo = self.repository.get_arqueo(arqueo_id, for_update=True)
            if not arqueo:
                raise NotFoundError("Arqueo no encontrado")
            if arqueo.estado == EstadoArqueo.CERRADO.value:
                raise NotOpenError("El arqueo ya está cerrado")

            fecha_fin = request.fecha_fin or fecha_local_hoy()
            if fecha_fin < arqueo.fecha_inicio:
                raise ValidationError("La fecha de cierre no puede ser anterior al inicio del período")

            productos = self.repository.get_productos_por_ids([s.id_producto for s in request.saldos_restantes])
            faltantes = [s.id_producto for s in request.saldos_restantes if s.id_producto not in productos]
            if faltantes:
                raise NotFoundError(f"Productos no encontrados: {faltantes}")

            ventas = self.repository.get_ventas(arqueo.id_mayorista, arqueo.fecha_inicio, fecha_fin)

            arqueo.fecha_fin = fecha_fin
            arqueo.hora_cierre = hora_local()
            arqueo.ventas_del_periodo = redondear2(sum((Decimal(v.total) for v in ventas), Decimal("0")))
            arqueo.saldos_restantes = [s.model_dump() for s in request.saldos_restantes]
            arqueo.efectivo_recibido = redondear2(request.efectivo_recibido)
            if request.observaciones is not None:
                arqueo.observaciones = request.observaciones
            arqueo.estado = EstadoArqueo.CERRADO.value

            self.repository.create_saldos([
                {
                    "id_arqueo": arqueo.id,
                    "id_mayorista": arqueo.id_mayorista,
                    "id_producto": s.id_producto,
                    "cantidad_restante": s.cantidad_restante,
                    "fecha": fecha_fin
                }
                for s in request.saldos_restantes
            ])

            self.db.commit()
            self.db.refresh(arqueo)
            logger.info(
                f"Arqueo mayorista {arqueo.id} cerrado: ventas {arqueo.ventas_del_periodo}, "
                f"efectivo {arqueo.efectivo_recibido}"
            )

            return ArqueoMayoristaDetailResponse(
                success=True,
                message="Arqueo cerrado exitosamente",
                arqueo=ArqueoMayoristaResponse.model_validate(arqueo)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error cerrando arqueo mayorista")
            raise DependencyFailureError(f"Error cerrando arqueo: {str(e)}")

    def obtener_arqueo(self, arqueo_id: int) -> ArqueoMayoristaDetailResponse:
        arqueo = self.repository.get_arqueo(arqueo_id)
        if not arqueo:
            raise NotFoundError("Arqueo no encontrado")
        return ArqueoMayoristaDetailResponse(
            success=True,
            message="Arqueo encontrado",
            arqueo=ArqueoMayoristaResponse.model_validate(arqueo)
        )

    def obtener_arqueo_abierto(self, id_mayorista: int) -> ArqueoMayoristaDetailResponse:
        arqueo = self.repository.get_arqueo_abierto(id_mayorista)
        return ArqueoMayoristaDetailResponse(
            success=True,
            message="Arqueo abierto encontrado" if arqueo else "No hay arqueo abierto",
            arqueo=ArqueoMayoristaResponse.model_validate(arqueo) if arqueo else None
        )

    def listar_arqueos(
        self,
        id_mayorista: Optional[int] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        estado: Optional[EstadoArqueo] = None
    ) -> ArqueoMayoristaListResponse:
        arqueos = self.repository.get_arqueos(
            id_mayorista, fecha_desde, fecha_hasta, estado.value if estado else None
        )
        return ArqueoMayoristaListResponse(
            success=True,
            message="Arqueos obtenidos exitosamente",
            data=[ArqueoMayoristaResponse.model_validate(a) for a in arqueos],
            total=len(arqueos)
        )

    def listar_saldos(
        self,
        id_mayorista: int,
        fecha: Optional[date] = None,
        id_arqueo: Optional[int] = None
    ) -> SaldoRestanteListResponse:
        saldos = self.repository.get_saldos(id_mayorista, fecha, id_arqueo)
        return SaldoRestanteListResponse(
            success=True,
            message="Saldos restantes obtenidos exitosamente",
            data=[SaldoRestanteResponse.model_validate(s) for s in saldos],
            total=len(saldos)
        )

    # ===== PREREGISTROS =====

    def guardar_preregistro(self, data: PreregistroMayoristaCreate) -> PreregistroMayoristaResponse:
        """Crear el preregistro o, si ya existe para esa fecha, reemplazar su cantidad"""
        self._get_mayorista(data.id_mayorista)
        if not self.repository.get_producto(data.id_producto):
            raise NotFoundError(f"Producto {data.id_producto} no encontrado")

        fecha = data.fecha or fecha_local_hoy()
        preregistro = self.repository.find_preregistro(data.id_mayorista, data.id_producto, fecha)
        if preregistro:
            preregistro.cantidad = data.cantidad
        else:
            preregistro = self.repository.create_preregistro({
                "id_mayorista": data.id_mayorista,
                "id_producto": data.id_producto,
                "cantidad": data.cantidad,
                "aumento": 0,
                "fecha": fecha
            })

        self.db.commit()
        self.db.refresh(preregistro)
        return PreregistroMayoristaResponse.model_validate(preregistro)

    def listar_preregistros(
        self,
        fecha: Optional[date] = None,
        id_mayorista: Optional[int] = None
    ) -> PreregistroMayoristaListResponse:
        preregistros = self.repository.get_preregistros(fecha or fecha_local_hoy(), id_mayorista)
        return PreregistroMayoristaListResponse(
            success=True,
            message="Preregistros obtenidos exitosamente",
            data=[PreregistroMayoristaResponse.model_validate(p) for p in preregistros],
            total=len(preregistros)
        )

    def eliminar_preregistro(self, preregistro_id: int) -> Dict[str, object]:
        preregistro = self.repository.get_preregistro(preregistro_id)
        if not preregistro:
            raise NotFoundError("Preregistro no encontrado")
        self.repository.delete_preregistro(preregistro)
        self.db.commit()
        return {"success": True, "message": "Preregistro eliminado", "id": preregistro_id}

    def aplicar_entrega(self, request: EntregaMayoristaRequest) -> PreregistroMayoristaListResponse:
        """Registrar una entrega contra los preregistros de la fecha"""
        try:
            fecha = request.fecha or fecha_local_hoy()
            preregistros = self.sumar_entrega(request.id_mayorista, request.items, fecha)
            self.db.commit()
            logger.info(f"Entrega aplicada a mayorista {request.id_mayorista}: {len(preregistros)} productos")

            return PreregistroMayoristaListResponse(
                success=True,
                message="Entrega registrada",
                data=[PreregistroMayoristaResponse.model_validate(p) for p in preregistros],
                total=len(preregistros)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error aplicando entrega")
            raise DependencyFailureError(f"Error aplicando entrega: {str(e)}")

    def sumar_entrega(self, id_mayorista: int, items, fecha: date) -> List[PreregistroMayorista]:
        """
        Sumar las cantidades entregadas al aumento de los preregistros (sin commit).

        ``items`` son objetos con ``id_producto`` y ``cantidad``. Todos los
        productos deben tener preregistro en la fecha; si falta alguno no se
        aplica nada.
        """
        encontrados = []
        sin_preregistro: List[int] = []
        for item in items:
            preregistro = self.repository.find_preregistro(
                id_mayorista, item.id_producto, fecha, for_update=True
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
        id_mayorista: int,
        id_producto: int,
        cantidad: int,
        fecha: date,
        id_pedido: Optional[int] = None
    ) -> VentaMayorista:
        """Asiento de aumento (mercadería entregada) sin commit"""
        self._verificar_periodo_abierto(id_mayorista, fecha)
        producto = self.repository.get_producto(id_producto)
        if not producto:
            raise NotFoundError(f"Producto {id_producto} no encontrado")

        precio = self._precio_por_defecto(producto)
        return self.repository.create_venta({
            "id_mayorista": id_mayorista,
            "id_producto": id_producto,
            "cantidad_vendida": 0,
            "cantidad_aumento": cantidad,
            "precio_por_mayor": precio,
            "total": calcular_total(0, cantidad, precio),
            "fecha": fecha,
            "hora": hora_local(),
            "id_pedido": id_pedido,
            "observaciones": f"Entrega del pedido {id_pedido}" if id_pedido else None
        })

    # ===== PAGOS =====

    def crear_pago(self, data: PagoMayoristaCreate) -> PagoMayoristaDetailResponse:
        """Pago pendiente por el total de una venta mayorista (uno por venta)"""
        venta = self._get_venta(data.id_venta)
        if self.repository.get_pago_por_venta(venta.id):
            raise ConflictError(f"La venta mayorista {venta.id} ya tiene un pago registrado")

        pago = self.repository.create_pago({
            "id_venta": venta.id,
            "id_mayorista": venta.id_mayorista,
            "monto_esperado": venta.total,
            "monto_recibido": Decimal("0"),
            "diferencia": Decimal("0"),
            "metodo_pago": data.metodo_pago.value,
            "observaciones": data.observaciones,
            "fecha_pago": data.fecha_pago or fecha_local_hoy(),
            "estado": EstadoPagoMayorista.PENDIENTE.value
        })
        self.db.commit()
        self.db.refresh(pago)
        logger.info(f"Pago mayorista {pago.id} creado para venta {venta.id}: esperado {pago.monto_esperado}")

        return PagoMayoristaDetailResponse(
            success=True,
            message="Pago registrado, pendiente de verificación",
            pago=PagoMayoristaResponse.model_validate(pago)
        )

    def verificar_pago(
        self,
        pago_id: int,
        id_administrador: int,
        request: PagoMayoristaVerificarRequest
    ) -> PagoMayoristaDetailResponse:
        """Única transición a verificado; no existe camino de regreso"""
        pago = self._get_pago(pago_id, for_update=True)
        if pago.estado == EstadoPagoMayorista.VERIFICADO.value:
            raise ConflictError("El pago ya está verificado")

        pago.monto_recibido = redondear2(request.monto_recibido)
        pago.diferencia = redondear2(pago.monto_recibido - Decimal(pago.monto_esperado))
        pago.id_administrador = id_administrador
        pago.fecha_verificacion = datetime.now()
        pago.estado = EstadoPagoMayorista.VERIFICADO.value
        if request.observaciones is not None:
            pago.observaciones = request.observaciones

        self.db.commit()
        self.db.refresh(pago)
        logger.info(f"Pago mayorista {pago.id} verificado por {id_administrador}: diferencia {pago.diferencia}")

        return PagoMayoristaDetailResponse(
            success=True,
            message="Pago verificado",
            pago=PagoMayoristaResponse.model_validate(pago)
        )

    def actualizar_pago(self, pago_id: int, request: PagoMayoristaUpdate) -> PagoMayoristaDetailResponse:
        """Corregir el monto recibido de un pago ya verificado"""
        pago = self._get_pago(pago_id, for_update=True)
        if pago.estado != EstadoPagoMayorista.VERIFICADO.value:
            raise ConflictError("Solo se puede editar el monto de un pago verificado")

        pago.monto_recibido = redondear2(request.monto_recibido)
        pago.diferencia = redondear2(pago.monto_recibido - Decimal(pago.monto_esperado))
        if request.observaciones is not None:
            pago.observaciones = request.observaciones

        self.db.commit()
        self.db.refresh(pago)
        return PagoMayoristaDetailResponse(
            success=True,
            message="Pago actualizado",
            pago=PagoMayoristaResponse.model_validate(pago)
        )

    def obtener_pago(self, pago_id: int) -> PagoMayoristaDetailResponse:
        return PagoMayoristaDetailResponse(
            success=True,
            message="Pago encontrado",
            pago=PagoMayoristaResponse.model_validate(self._get_pago(pago_id))
        )

    def listar_pagos(
        self,
        id_mayorista: Optional[int] = None,
        estado: Optional[EstadoPagoMayorista] = None
    ) -> PagoMayoristaListResponse:
        pagos = self.repository.get_pagos(id_mayorista, estado.value if estado else None)
        return PagoMayoristaListResponse(
            success=True,
            message="Pagos obtenidos exitosamente",
            data=[PagoMayoristaResponse.model_validate(p) for p in pagos],
            total=len(pagos)
        )

    # ===== HELPERS =====

    def _get_mayorista(self, mayorista_id: int) -> Usuario:
        mayorista = self.repository.get_mayorista(mayorista_id)
        if not mayorista or mayorista.rol != RolUsuario.MAYORISTA.value:
            raise NotFoundError(f"Mayorista {mayorista_id} no encontrado")
        return mayorista

    def _get_venta(self, venta_id: int) -> VentaMayorista:
        venta = self.repository.get_venta(venta_id)
        if not venta:
            raise NotFoundError("Venta mayorista no encontrada")
        return venta

    def _get_pago(self, pago_id: int, for_update: bool = False) -> PagoMayorista:
        pago = self.repository.get_pago(pago_id, for_update=for_update)
        if not pago:
            raise NotFoundError("Pago no encontrado")
        return pago

    def _verificar_periodo_abierto(self, id_mayorista: int, fecha: date) -> None:
        """Las ventas de un período ya conciliado no se crean, editan ni eliminan"""
        cerrado = self.repository.get_arqueo_cerrado_en_fecha(id_mayorista, fecha)
        if cerrado:
            raise ConflictError(
                f"El {fecha.isoformat()} pertenece al arqueo cerrado {cerrado.id}; "
                f"sus ventas ya no se pueden modificar"
            )

    def _sembrar_preregistros(self, id_mayorista: int, saldos: List[dict], fecha: date) -> int:
        sembrados = 0
        for saldo in saldos:
            cantidad = int(saldo.get("cantidad_restante", 0))
            if cantidad <= 0:
                continue
            if self.repository.find_preregistro(id_mayorista, saldo["id_producto"], fecha):
                continue
            self.repository.create_preregistro({
                "id_mayorista": id_mayorista,
                "id_producto": saldo["id_producto"],
                "cantidad": cantidad,
                "aumento": 0,
                "fecha": fecha
            })
            sembrados += 1
        return sembrados

    @staticmethod
    def _precio_por_defecto(producto) -> Decimal:
        """precio_mayor del producto, o su precio unitario si no tiene"""
        precio = producto.precio_mayor if producto.precio_mayor is not None else producto.precio_unitario
        return redondear2(precio)

    def _verificar_pedido(self, id_pedido: int, id_distribuidor: int) -> None:
        pedido = self.repository.get_pedido(id_pedido)
        if not pedido or pedido.id_usuario != id_distribuidor:
            raise NotFoundError(f"Pedido {id_pedido} no encontrado para el distribuidor {id_distribuidor}")
