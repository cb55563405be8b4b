from typing import Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
import logging

from .repository import CajaRepository
from .schemas import (
    CajaAbrirRequest, CajaCerrarRequest, CajaUpdateRequest, ArqueoCajaResponse,
    ArqueoCajaDetailResponse, ArqueoCajaListResponse, ResumenMetodosPagoResponse
)
from tiendapos.core.exceptions import (
    NotFoundError, AlreadyOpenError, NotOpenError, DependencyFailureError
)
from tiendapos.shared.database.models import ArqueoCaja, EstadoArqueo, MetodoPago
from tiendapos.shared.utils.fechas import fecha_local_hoy, hora_local, redondear2

logger = logging.getLogger(__name__)

class CajaService:
    """
    Ledger de caja: una sesión ABIERTA por fecha.

    total_ventas solo lo escriben la apertura, el motor de ventas (alta y
    anulación de ventas no crédito) y el recálculo explícito.
    """

    def __init__(self, db: Session, repository: Optional[CajaRepository] = None):
        self.db = db
        self.repository = repository or CajaRepository(db)

    # ===== CICLO DE VIDA =====

    def abrir_caja(self, request: CajaAbrirRequest, id_administrador: int) -> ArqueoCajaDetailResponse:
        """
        Abrir la caja del día.

        Las ventas no crédito ya registradas hoy forman el total inicial.
        """
        try:
            hoy = fecha_local_hoy()
            if self.repository.get_abierta(hoy, for_update=True):
                raise AlreadyOpenError("Ya existe una caja abierta para hoy")

            arqueo = self.repository.create_arqueo({
                "fecha": hoy,
                "hora_apertura": hora_local(),
                "monto_inicial": redondear2(request.monto_inicial),
                "total_ventas": self.repository.total_ventas_caja(hoy),
                "diferencia": Decimal("0"),
                "id_administrador": id_administrador,
                "observacion": request.observacion,
                "estado": EstadoArqueo.ABIERTO.value
            })
            self.db.commit()
            self.db.refresh(arqueo)
            logger.info(f"Caja {arqueo.id} abierta con {arqueo.monto_inicial} por administrador {id_administrador}")

            return ArqueoCajaDetailResponse(
                success=True,
                message="Caja abierta exitosamente",
                arqueo=ArqueoCajaResponse.model_validate(arqueo)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error abriendo caja")
            raise DependencyFailureError(f"Error abriendo caja: {str(e)}")

    def cerrar_caja(self, arqueo_id: int, request: CajaCerrarRequest) -> ArqueoCajaDetailResponse:
        """diferencia = efectivo_real - (monto_inicial + total_ventas)"""
        try:
            arqueo = self._get_arqueo(arqueo_id, for_update=True)
            if arqueo.estado != EstadoArqueo.ABIERTO.value:
                raise NotOpenError("La caja ya está cerrada")

            arqueo.hora_cierre = hora_local()
            arqueo.efectivo_real = redondear2(request.efectivo_real)
            arqueo.diferencia = self._calcular_diferencia(arqueo)
            arqueo.estado = EstadoArqueo.CERRADO.value
            if request.observacion is not None:
                arqueo.observacion = request.observacion

            self.db.commit()
            self.db.refresh(arqueo)
            logger.info(f"Caja {arqueo.id} cerrada. Diferencia: {arqueo.diferencia}")

            return ArqueoCajaDetailResponse(
                success=True,
                message="Caja cerrada exitosamente",
                arqueo=ArqueoCajaResponse.model_validate(arqueo)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error cerrando caja")
            raise DependencyFailureError(f"Error cerrando caja: {str(e)}")

    def actualizar_caja(self, arqueo_id: int, request: CajaUpdateRequest) -> ArqueoCajaDetailResponse:
        try:
            arqueo = self._get_arqueo(arqueo_id, for_update=True)

            if request.monto_inicial is not None:
                arqueo.monto_inicial = redondear2(request.monto_inicial)
            if request.efectivo_real is not None:
                arqueo.efectivo_real = redondear2(request.efectivo_real)
            if request.observacion is not None:
                arqueo.observacion = request.observacion

            if arqueo.efectivo_real is not None:
                arqueo.diferencia = self._calcular_diferencia(arqueo)

            self.db.commit()
            self.db.refresh(arqueo)

            return ArqueoCajaDetailResponse(
                success=True,
                message="Caja actualizada",
                arqueo=ArqueoCajaResponse.model_validate(arqueo)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error actualizando caja")
            raise DependencyFailureError(f"Error actualizando caja: {str(e)}")

    def recalcular_total_ventas(self, arqueo_id: int) -> ArqueoCajaDetailResponse:
        """Volver a derivar total_ventas desde la tabla de ventas"""
        try:
            arqueo = self._get_arqueo(arqueo_id, for_update=True)
            anterior = arqueo.total_ventas
            arqueo.total_ventas = self.repository.total_ventas_caja(arqueo.fecha)
            if arqueo.efectivo_real is not None:
                arqueo.diferencia = self._calcular_diferencia(arqueo)

            self.db.commit()
            self.db.refresh(arqueo)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error recalculando total de ventas de caja")
            raise DependencyFailureError(f"Error recalculando total de ventas: {str(e)}")

        if Decimal(anterior) != Decimal(arqueo.total_ventas):
            logger.warning(
                f"Caja {arqueo.id}: total_ventas corregido de {anterior} a {arqueo.total_ventas}"
            )

        return ArqueoCajaDetailResponse(
            success=True,
            message="Total de ventas recalculado",
            arqueo=ArqueoCajaResponse.model_validate(arqueo)
        )

    # ===== ESCRITURAS DEL MOTOR DE VENTAS =====

    def incrementar_total_ventas(self, fecha: date, monto: Decimal) -> Optional[ArqueoCaja]:
        """Sumar una venta a la caja abierta de la fecha (sin commit)"""
        arqueo = self.repository.get_abierta(fecha, for_update=True)
        if not arqueo:
            return None
        arqueo.total_ventas = redondear2(Decimal(arqueo.total_ventas) + Decimal(monto))
        return arqueo

    def decrementar_total_ventas(self, fecha: date, monto: Decimal) -> Optional[ArqueoCaja]:
        """Restar una venta anulada de la caja abierta de la fecha, con piso 0 (sin commit)"""
        arqueo = self.repository.get_abierta(fecha, for_update=True)
        if not arqueo:
            return None
        nuevo_total = Decimal(arqueo.total_ventas) - Decimal(monto)
        arqueo.total_ventas = redondear2(max(Decimal("0"), nuevo_total))
        return arqueo

    # ===== CONSULTAS =====

    def obtener_caja_abierta(self, fecha: Optional[date] = None) -> ArqueoCajaDetailResponse:
        arqueo = self.repository.get_abierta(fecha or fecha_local_hoy())
        return ArqueoCajaDetailResponse(
            success=True,
            message="Caja abierta encontrada" if arqueo else "No hay caja abierta",
            arqueo=ArqueoCajaResponse.model_validate(arqueo) if arqueo else None
        )

    def obtener_caja(self, arqueo_id: int) -> ArqueoCajaDetailResponse:
        return ArqueoCajaDetailResponse(
            success=True,
            message="Caja encontrada",
            arqueo=ArqueoCajaResponse.model_validate(self._get_arqueo(arqueo_id))
        )

    def listar_cajas(self) -> ArqueoCajaListResponse:
        arqueos = self.repository.get_all()
        return ArqueoCajaListResponse(
            success=True,
            message="Arqueos de caja obtenidos",
            data=[ArqueoCajaResponse.model_validate(a) for a in arqueos],
            total=len(arqueos)
        )

    def resumen_metodos_pago(self, fecha: Optional[date] = None) -> ResumenMetodosPagoResponse:
        """
        Ventas del día por método de pago más lo cobrado de ventas a crédito.

        total_caja son las ventas no crédito (lo mismo que total_ventas de la
        caja); ingresos_credito suma las cuotas iniciales de las ventas a
        crédito del día y los pagos de cuotas con fecha_pago del día.
        """
        fecha = fecha or fecha_local_hoy()
        por_metodo = self.repository.totales_por_metodo(fecha)

        totales = {}
        cantidades = {}
        for metodo in MetodoPago:
            total, cantidad = por_metodo.get(metodo.value, (Decimal("0"), 0))
            totales[metodo.value] = redondear2(total)
            cantidades[metodo.value] = cantidad

        total_caja = redondear2(sum(
            (v for k, v in totales.items() if k != MetodoPago.CREDITO.value), Decimal("0")
        ))
        cuotas_iniciales, pagos_cuotas = self.repository.ingresos_credito(fecha)
        ingresos_credito = redondear2(cuotas_iniciales + pagos_cuotas)

        return ResumenMetodosPagoResponse(
            success=True,
            message=f"Resumen de ventas del {fecha.isoformat()}",
            fecha=fecha,
            totales=totales,
            cantidad_ventas=cantidades,
            total_caja=total_caja,
            cuotas_iniciales_credito=redondear2(cuotas_iniciales),
            pagos_cuotas_credito=redondear2(pagos_cuotas),
            ingresos_credito=ingresos_credito,
            ingresos_totales=redondear2(total_caja + ingresos_credito)
        )

    # ===== HELPERS =====

    def _get_arqueo(self, arqueo_id: int, for_update: bool = False) -> ArqueoCaja:
        arqueo = self.repository.get_by_id(arqueo_id, for_update=for_update)
        if not arqueo:
            raise NotFoundError("Arqueo de caja no encontrado")
        return arqueo

    @staticmethod
    def _calcular_diferencia(arqueo: ArqueoCaja) -> Decimal:
        esperado = Decimal(arqueo.monto_inicial) + Decimal(arqueo.total_ventas)
        return redondear2(Decimal(arqueo.efectivo_real) - esperado)
