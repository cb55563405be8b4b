from typing import Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
import logging

from .repository import CreditoRepository
from .calculator import CreditCalculator
from .schemas import (
    CalculoCredito, VentaCreditoResponse, VentaCreditoDetailResponse, VentaCreditoListResponse,
    PagoCreditoCreate, PagoCreditoUpdate, PagoCreditoResponse, PagoCreditoOperacionResponse,
    PagoCreditoListResponse
)
from tiendapos.config.settings import settings
from tiendapos.core.exceptions import NotFoundError, ValidationError, DependencyFailureError
from tiendapos.shared.database.models import Venta, EstadoVenta, EstadoCredito
from tiendapos.shared.utils.fechas import fecha_local_hoy, redondear2

logger = logging.getLogger(__name__)

class CreditoService:
    def __init__(self, db: Session, repository: Optional[CreditoRepository] = None):
        self.db = db
        self.repository = repository or CreditoRepository(db)
        self.calculator = CreditCalculator

    # ===== CONSULTAS =====

    def calcular(self, venta: Venta, hoy: Optional[date] = None) -> CalculoCredito:
        return self.calculator.recalcular(
            venta, self.repository.suma_pagos(venta.id), hoy or fecha_local_hoy()
        )

    def obtener_credito(self, venta_id: int, hoy: Optional[date] = None) -> VentaCreditoDetailResponse:
        venta = self._get_venta_credito(venta_id)
        return VentaCreditoDetailResponse(
            success=True,
            message="Crédito encontrado",
            credito=self._build_credito(venta, self.calcular(venta, hoy))
        )

    def listar_creditos(
        self,
        estado_credito: Optional[EstadoCredito] = None,
        id_cliente: Optional[int] = None,
        hoy: Optional[date] = None
    ) -> VentaCreditoListResponse:
        """
        Listar créditos recalculados a la fecha.

        El filtro por estado se aplica sobre el estado recalculado, no sobre el
        valor guardado en la venta.
        """
        hoy = hoy or fecha_local_hoy()
        ventas = self.repository.get_ventas_credito(id_cliente)
        pagos = self.repository.suma_pagos_por_venta([v.id for v in ventas])

        creditos = []
        for venta in ventas:
            calculo = self.calculator.recalcular(venta, pagos.get(venta.id, Decimal("0")), hoy)
            if estado_credito and calculo.estado_credito != estado_credito:
                continue
            creditos.append(self._build_credito(venta, calculo))

        saldo_total = sum((c.calculo.saldo_pendiente for c in creditos), Decimal("0"))

        return VentaCreditoListResponse(
            success=True,
            message=f"{len(creditos)} créditos encontrados",
            data=creditos,
            total=len(creditos),
            saldo_pendiente_total=redondear2(saldo_total)
        )

    # ===== INTERÉS =====

    def eximir_interes(self, venta_id: int, eximir: bool) -> VentaCreditoDetailResponse:
        """
        Activar o quitar la exención de interés.

        No modifica pagos ya registrados; solo cambia el recálculo posterior.
        """
        venta = self._get_venta_credito(venta_id)
        venta.interes_eximido = eximir
        calculo = self.refrescar_cache(venta)
        self.db.commit()
        logger.info(f"Venta {venta_id}: interés {'eximido' if eximir else 'restablecido'}")

        return VentaCreditoDetailResponse(
            success=True,
            message="Interés eximido" if eximir else "Interés restablecido",
            credito=self._build_credito(venta, calculo)
        )

    # ===== PAGOS =====

    def registrar_pago(
        self,
        venta_id: int,
        pago_data: PagoCreditoCreate,
        id_usuario: int
    ) -> PagoCreditoOperacionResponse:
        """
        Registrar el pago de una cuota.

        - La cuota debe existir (1..meses_credito) y no estar pagada
        - La fecha de pago no puede ser futura
        - El monto no puede superar el saldo pendiente + margen de redondeo;
          dentro del margen se ajusta al saldo exacto
        """
        try:
            venta = self._get_venta_credito(venta_id, for_update=True)
            self._validar_venta_activa(venta, "No se puede registrar un pago para una venta anulada")

            hoy = fecha_local_hoy()
            fecha_pago = pago_data.fecha_pago or hoy
            if fecha_pago > hoy:
                raise ValidationError("La fecha de pago no puede ser futura")

            cuotas = venta.meses_credito or 1
            if pago_data.numero_cuota > cuotas:
                raise ValidationError(
                    f"La cuota {pago_data.numero_cuota} excede el número total de cuotas ({cuotas})"
                )
            if self.repository.cuota_pagada(venta.id, pago_data.numero_cuota):
                raise ValidationError(f"La cuota {pago_data.numero_cuota} ya está pagada")

            calculo = self.calcular(venta, hoy)
            monto = self._validar_monto(pago_data.monto_pagado, calculo.saldo_pendiente)

            pago = self.repository.create_pago({
                "id_venta": venta.id,
                "monto_pagado": monto,
                "fecha_pago": fecha_pago,
                "metodo_pago": pago_data.metodo_pago.value,
                "numero_cuota": pago_data.numero_cuota,
                "observacion": pago_data.observacion,
                "id_usuario": id_usuario
            })

            calculo = self.refrescar_cache(venta, hoy)
            self.db.commit()
            self.db.refresh(pago)
            logger.info(
                f"Pago {pago.id} de cuota {pago.numero_cuota} registrado en venta {venta.id}: "
                f"{monto} (saldo {calculo.saldo_pendiente})"
            )

            return PagoCreditoOperacionResponse(
                success=True,
                message="Pago registrado exitosamente",
                pago=PagoCreditoResponse.model_validate(pago),
                calculo=calculo
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error registrando pago de crédito")
            raise DependencyFailureError(f"Error al crear el pago: {str(e)}")

    def actualizar_pago(self, pago_id: int, update_data: PagoCreditoUpdate) -> PagoCreditoOperacionResponse:
        try:
            pago = self.repository.get_pago(pago_id)
            if not pago:
                raise NotFoundError("Pago no encontrado")

            venta = self._get_venta_credito(pago.id_venta, for_update=True)
            self._validar_venta_activa(venta, "No se puede editar un pago de una venta anulada")

            hoy = fecha_local_hoy()
            if update_data.fecha_pago is not None:
                if update_data.fecha_pago > hoy:
                    raise ValidationError("La fecha de pago no puede ser futura")
                pago.fecha_pago = update_data.fecha_pago

            if update_data.monto_pagado is not None:
                # Saldo sin contar el pago que se edita
                calculo = self.calculator.recalcular(
                    venta, self.repository.suma_pagos(venta.id, excluir_pago_id=pago.id), hoy
                )
                pago.monto_pagado = self._validar_monto(update_data.monto_pagado, calculo.saldo_pendiente)

            if update_data.metodo_pago is not None:
                pago.metodo_pago = update_data.metodo_pago.value
            if update_data.observacion is not None:
                pago.observacion = update_data.observacion

            self.db.flush()
            calculo = self.refrescar_cache(venta, hoy)
            self.db.commit()
            self.db.refresh(pago)

            return PagoCreditoOperacionResponse(
                success=True,
                message="Pago actualizado exitosamente",
                pago=PagoCreditoResponse.model_validate(pago),
                calculo=calculo
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error actualizando pago de crédito")
            raise DependencyFailureError(f"Error al actualizar el pago: {str(e)}")

    def eliminar_pago(self, pago_id: int) -> PagoCreditoOperacionResponse:
        try:
            pago = self.repository.get_pago(pago_id)
            if not pago:
                raise NotFoundError("Pago no encontrado")

            venta = self._get_venta_credito(pago.id_venta, for_update=True)
            self.repository.delete_pago(pago)
            calculo = self.refrescar_cache(venta)
            self.db.commit()
            logger.info(f"Pago {pago_id} eliminado de venta {venta.id}")

            return PagoCreditoOperacionResponse(
                success=True,
                message="Pago eliminado exitosamente",
                calculo=calculo
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error eliminando pago de crédito")
            raise DependencyFailureError(f"Error al eliminar el pago: {str(e)}")

    def listar_pagos(self, venta_id: int) -> PagoCreditoListResponse:
        self._get_venta_credito(venta_id)
        pagos = self.repository.get_pagos(venta_id)
        return PagoCreditoListResponse(
            success=True,
            message="Pagos obtenidos exitosamente",
            data=[PagoCreditoResponse.model_validate(p) for p in pagos],
            total=len(pagos)
        )

    # ===== HELPERS =====

    def refrescar_cache(self, venta: Venta, hoy: Optional[date] = None) -> CalculoCredito:
        """Escribir en la venta la proyección recalculada (sin commit)"""
        calculo = self.calcular(venta, hoy)
        venta.monto_interes = calculo.monto_interes
        venta.total_con_interes = calculo.total_con_interes
        venta.monto_pagado = calculo.monto_pagado
        venta.estado_credito = calculo.estado_credito.value
        return calculo

    def _get_venta_credito(self, venta_id: int, for_update: bool = False) -> Venta:
        venta = self.repository.get_venta(venta_id, for_update=for_update)
        if not venta:
            raise NotFoundError("Venta no encontrada")
        if not venta.es_credito:
            raise ValidationError("Esta venta no es a crédito")
        return venta

    @staticmethod
    def _validar_venta_activa(venta: Venta, mensaje: str) -> None:
        if venta.estado == EstadoVenta.ANULADA.value:
            raise ValidationError(mensaje)

    @staticmethod
    def _validar_monto(monto: Decimal, saldo_pendiente: Decimal) -> Decimal:
        """Rechaza montos sobre saldo + margen; dentro del margen ajusta al saldo exacto"""
        monto = redondear2(monto)
        if monto <= 0:
            raise ValidationError("El monto a pagar debe ser mayor a cero")
        if monto > saldo_pendiente + settings.margen_redondeo_pago:
            raise ValidationError(
                f"El monto a pagar (Bs. {monto}) excede el saldo pendiente (Bs. {saldo_pendiente})"
            )
        if monto > saldo_pendiente:
            monto = redondear2(saldo_pendiente)
        if monto <= 0:
            raise ValidationError("El crédito no tiene saldo pendiente")
        return monto

    @staticmethod
    def _build_credito(venta: Venta, calculo: CalculoCredito) -> VentaCreditoResponse:
        return VentaCreditoResponse(
            id=venta.id,
            fecha=venta.fecha,
            hora=venta.hora,
            total=venta.total,
            id_cliente=venta.id_cliente,
            cliente_nombre=venta.cliente.nombre if venta.cliente else None,
            id_vendedor=venta.id_vendedor,
            meses_credito=venta.meses_credito or 1,
            cuota_inicial=venta.cuota_inicial or Decimal("0"),
            tasa_interes=venta.tasa_interes or Decimal("0"),
            calculo=calculo
        )
