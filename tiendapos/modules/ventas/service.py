# tiendapos/modules/ventas/service.py
from typing import Optional, List
from fastapi import HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from datetime import date
from decimal import Decimal
import logging

from .repository import VentaRepository
from .schemas import (
    VentaCreate, VentaResponse, VentaDetailResponse, VentaListResponse, ItemVenta,
    EstadisticaProducto, EstadisticasVentasResponse,
    ClienteCreate, ClienteResponse, ClienteListResponse
)
from tiendapos.config.settings import settings
from tiendapos.core.exceptions import (
    ValidationError, NotFoundError, ConflictError, AlreadyVoidedError,
    StaleOperationError, DetailInsertFailedError, DependencyFailureError
)
from tiendapos.modules.caja.service import CajaService
from tiendapos.modules.creditos.calculator import CreditCalculator
from tiendapos.shared.database.models import Venta, MetodoPago, EstadoVenta
from tiendapos.shared.schemas.ticket import TicketData, LineaVenta, LineaCarrito
from tiendapos.shared.services.inventory_service import InventoryService
from tiendapos.shared.utils.fechas import fecha_local_hoy, hora_local, redondear2

logger = logging.getLogger(__name__)

class VentaService:
    """
    Motor de ventas: completada -> anulada (terminal).

    Alta y anulación corren cada una en una sola transacción de base de datos
    que abarca venta, detalles, stock, movimientos y (en el alta) la caja.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[VentaRepository] = None,
        inventory: Optional[InventoryService] = None,
        caja: Optional[CajaService] = None
    ):
        self.db = db
        self.repository = repository or VentaRepository(db)
        self.inventory = inventory or InventoryService(db)
        self.caja = caja or CajaService(db)

    # ===== ALTA =====

    def crear_venta(self, venta_data: VentaCreate, id_vendedor: int) -> VentaDetailResponse:
        """
        Crear venta completa.

        Proceso:
        1. Validar datos de crédito
        2. Verificar stock de todos los items (SELECT FOR UPDATE, sin escribir)
        3. Insertar venta con fecha/hora locales
        4. Insertar detalles en un lote
        5. Descontar stock y registrar movimientos de venta
        6. Sumar el total a la caja abierta (solo ventas no crédito)
        7. Commit único
        """
        try:
            es_credito = venta_data.metodo_pago == MetodoPago.CREDITO
            logger.info(
                f"Iniciando venta - Vendedor: {id_vendedor}, método: {venta_data.metodo_pago.value}, "
                f"items: {len(venta_data.items)}"
            )

            # PASO 1: Validar crédito
            if es_credito:
                self._validar_datos_credito(venta_data)

            # PASO 2: Verificar stock (todo o nada)
            reservados = self.inventory.validar_y_reservar_stock([
                {"id_producto": item.id_producto, "cantidad": item.cantidad}
                for item in venta_data.items
            ])
            productos = {producto.id: producto for producto, _ in reservados}

            detalles_data = []
            for item in venta_data.items:
                precio = item.precio_unitario
                if precio is None:
                    precio = productos[item.id_producto].precio_unitario
                precio = redondear2(precio)
                detalles_data.append({
                    "id_producto": item.id_producto,
                    "cantidad": item.cantidad,
                    "precio_unitario": precio,
                    "subtotal": redondear2(precio * item.cantidad)
                })
            total = redondear2(sum((d["subtotal"] for d in detalles_data), Decimal("0")))

            cuota_inicial = redondear2(venta_data.cuota_inicial or 0)
            if es_credito and cuota_inicial > total:
                raise ValidationError("La cuota inicial no puede superar el total de la venta")

            # PASO 3: Crear venta
            fecha = fecha_local_hoy()
            venta_dict = {
                "fecha": fecha,
                "hora": hora_local(),
                "total": total,
                "metodo_pago": venta_data.metodo_pago.value,
                "id_cliente": venta_data.id_cliente,
                "id_vendedor": id_vendedor,
                "estado": EstadoVenta.COMPLETADA.value
            }
            if es_credito:
                venta_dict.update({
                    "meses_credito": venta_data.meses_credito,
                    "fecha_vencimiento": CreditCalculator.calcular_fecha_vencimiento(
                        fecha, venta_data.meses_credito
                    ),
                    "cuota_inicial": cuota_inicial,
                    "tasa_interes": redondear2(venta_data.tasa_interes or 0),
                    "interes_eximido": False
                })

            venta = self.repository.create_venta(venta_dict)
            logger.info(f"Venta creada con ID: {venta.id}")

            if es_credito:
                calculo = CreditCalculator.recalcular(venta, Decimal("0"), fecha)
                venta.monto_interes = calculo.monto_interes
                venta.total_con_interes = calculo.total_con_interes
                venta.monto_pagado = calculo.monto_pagado
                venta.estado_credito = calculo.estado_credito.value

            # PASO 4: Detalles
            for detalle in detalles_data:
                detalle["id_venta"] = venta.id
            try:
                self.repository.create_detalles(detalles_data)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error insertando detalles de la venta {venta.id}: {e}")
                raise DetailInsertFailedError("Error al registrar los detalles de la venta")

            # PASO 5: Stock y movimientos
            self.inventory.descontar_por_venta(reservados, venta.id, id_vendedor, fecha)

            # PASO 6: Caja
            if not es_credito:
                arqueo = self.caja.incrementar_total_ventas(fecha, total)
                if arqueo:
                    logger.info(f"Caja {arqueo.id}: total_ventas = {arqueo.total_ventas}")

            # PASO 7: Commit
            self.db.commit()
            self.db.refresh(venta)
            logger.info(f"Venta {venta.id} completada exitosamente: total {venta.total}")

            return VentaDetailResponse(
                success=True,
                message="Venta registrada exitosamente",
                venta=VentaResponse.model_validate(venta)
            )

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error inesperado creando venta")
            raise DependencyFailureError(f"Error creando venta: {str(e)}")

    # ===== ANULACIÓN =====

    def anular_venta(self, venta_id: int, id_usuario: int, motivo: str) -> VentaDetailResponse:
        """
        Anular una venta del día.

        Stock y movimientos de devolución se revierten en una sola transacción
        junto con el cambio de estado. Para ventas no crédito, el descuento del
        total de la caja abierta se hace después y un fallo ahí solo se registra
        en el log.
        """
        try:
            venta = self.repository.get_venta(venta_id, for_update=True)
            if not venta:
                raise NotFoundError("Venta no encontrada")
            if venta.estado == EstadoVenta.ANULADA.value:
                raise AlreadyVoidedError()

            if venta.fecha != fecha_local_hoy():
                raise StaleOperationError("Solo se pueden anular ventas del día")

            detalles = self.repository.get_detalles(venta.id)
            self.inventory.revertir_por_venta(
                [{"id_producto": d.id_producto, "cantidad": d.cantidad} for d in detalles],
                venta.id,
                id_usuario,
                motivo
            )

            venta.estado = EstadoVenta.ANULADA.value
            self.db.commit()
            self.db.refresh(venta)
            logger.info(f"Venta {venta.id} anulada por usuario {id_usuario}: {motivo}")

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception("Error inesperado anulando venta")
            raise DependencyFailureError(f"Error anulando venta: {str(e)}")

        if not venta.es_credito:
            self._descontar_de_caja(venta)

        return VentaDetailResponse(
            success=True,
            message="Venta anulada exitosamente",
            venta=VentaResponse.model_validate(venta)
        )

    def _descontar_de_caja(self, venta: Venta) -> None:
        """Best-effort: nunca revierte la anulación"""
        try:
            arqueo = self.caja.decrementar_total_ventas(venta.fecha, venta.total)
            self.db.commit()
            if arqueo:
                logger.info(f"Caja {arqueo.id}: total_ventas = {arqueo.total_ventas} tras anular venta {venta.id}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Venta {venta.id} anulada pero no se pudo actualizar la caja: {e}")

    # ===== CONSULTAS =====

    def obtener_venta(self, venta_id: int) -> VentaDetailResponse:
        venta = self.repository.get_venta(venta_id)
        if not venta:
            raise NotFoundError("Venta no encontrada")
        return VentaDetailResponse(
            success=True,
            message="Venta encontrada",
            venta=VentaResponse.model_validate(venta)
        )

    def listar_ventas(
        self,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        id_vendedor: Optional[int] = None,
        estado: Optional[EstadoVenta] = None,
        metodo_pago: Optional[MetodoPago] = None
    ) -> VentaListResponse:
        ventas = self.repository.get_ventas(
            fecha_desde,
            fecha_hasta,
            id_vendedor,
            estado.value if estado else None,
            metodo_pago.value if metodo_pago else None
        )
        return self._build_list(ventas, "Ventas obtenidas exitosamente")

    def ventas_del_dia(self, id_vendedor: Optional[int] = None) -> VentaListResponse:
        hoy = fecha_local_hoy()
        ventas = self.repository.get_ventas(
            hoy, hoy, id_vendedor, EstadoVenta.COMPLETADA.value
        )
        return self._build_list(ventas, f"Ventas del {hoy.isoformat()}")

    def estadisticas_productos(
        self,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None
    ) -> EstadisticasVentasResponse:
        """Unidades e importe vendidos por producto (solo ventas completadas)"""
        filas = self.repository.get_estadisticas_productos(fecha_desde, fecha_hasta)
        return EstadisticasVentasResponse(
            success=True,
            message="Estadísticas de ventas por producto",
            fecha_desde=fecha_desde,
            fecha_hasta=fecha_hasta,
            productos=[
                EstadisticaProducto(
                    id_producto=id_producto,
                    codigo=codigo,
                    nombre=nombre,
                    cantidad_vendida=int(cantidad or 0),
                    monto_total=redondear2(monto or 0)
                )
                for id_producto, codigo, nombre, cantidad, monto in filas
            ]
        )

    # ===== TICKETS =====

    def ticket_venta(self, venta_id: int) -> TicketData:
        venta = self.repository.get_venta(venta_id)
        if not venta:
            raise NotFoundError("Venta no encontrada")

        productos = self.repository.get_productos_por_ids([d.id_producto for d in venta.detalles])
        return TicketData(
            titulo="Nota de venta",
            referencia=venta.id,
            fecha=venta.fecha,
            hora=venta.hora,
            lineas=[
                LineaVenta(
                    id_producto=d.id_producto,
                    producto=productos[d.id_producto].nombre,
                    cantidad=d.cantidad,
                    precio_unitario=d.precio_unitario,
                    subtotal=d.subtotal
                )
                for d in venta.detalles
            ],
            total=venta.total,
            metodo_pago=venta.metodo_pago,
            cliente=venta.cliente.nombre if venta.cliente else None,
            vendedor=venta.vendedor.nombre if venta.vendedor else None
        )

    def ticket_carrito(self, items: List[ItemVenta]) -> TicketData:
        """Vista previa de un carrito aún no registrado"""
        productos = self.repository.get_productos_por_ids([i.id_producto for i in items])

        lineas = []
        for item in items:
            producto = productos.get(item.id_producto)
            if not producto:
                raise NotFoundError(f"Producto {item.id_producto} no encontrado")
            precio = redondear2(
                item.precio_unitario if item.precio_unitario is not None else producto.precio_unitario
            )
            lineas.append(LineaCarrito(
                id_producto=producto.id,
                producto=producto.nombre,
                cantidad=item.cantidad,
                precio_unitario=precio,
                subtotal=redondear2(precio * item.cantidad)
            ))

        return TicketData(
            titulo="Pre-cuenta",
            fecha=fecha_local_hoy(),
            hora=hora_local(),
            lineas=lineas,
            total=redondear2(sum((l.subtotal for l in lineas), Decimal("0")))
        )

    # ===== CLIENTES =====

    def crear_cliente(self, cliente_data: ClienteCreate) -> ClienteResponse:
        if cliente_data.ci_nit and self.repository.get_cliente_por_documento(cliente_data.ci_nit):
            raise ConflictError(f"Ya existe un cliente con CI/NIT {cliente_data.ci_nit}")
        cliente = self.repository.create_cliente(cliente_data.model_dump())
        self.db.commit()
        self.db.refresh(cliente)
        return ClienteResponse.model_validate(cliente)

    def obtener_cliente(self, cliente_id: int) -> ClienteResponse:
        cliente = self.repository.get_cliente(cliente_id)
        if not cliente:
            raise NotFoundError("Cliente no encontrado")
        return ClienteResponse.model_validate(cliente)

    def listar_clientes(self, busqueda: Optional[str] = None) -> ClienteListResponse:
        clientes = self.repository.get_clientes(busqueda)
        return ClienteListResponse(
            success=True,
            message="Clientes obtenidos exitosamente",
            data=[ClienteResponse.model_validate(c) for c in clientes],
            total=len(clientes)
        )

    # ===== HELPERS =====

    def _validar_datos_credito(self, venta_data: VentaCreate) -> None:
        if not venta_data.id_cliente:
            raise ValidationError("Las ventas a crédito requieren un cliente")
        if venta_data.meses_credito is None:
            raise ValidationError("Las ventas a crédito requieren el número de cuotas")
        if not 1 <= venta_data.meses_credito <= settings.max_cuotas_credito:
            raise ValidationError(
                f"El número de cuotas debe estar entre 1 y {settings.max_cuotas_credito}"
            )
        if not self.repository.get_cliente(venta_data.id_cliente):
            raise NotFoundError("Cliente no encontrado")

    @staticmethod
    def _build_list(ventas: List[Venta], message: str) -> VentaListResponse:
        monto = sum(
            (Decimal(v.total) for v in ventas if v.estado != EstadoVenta.ANULADA.value),
            Decimal("0")
        )
        return VentaListResponse(
            success=True,
            message=message,
            data=[VentaResponse.model_validate(v) for v in ventas],
            total=len(ventas),
            monto_total=redondear2(monto)
        )
