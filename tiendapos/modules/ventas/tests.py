"""
Tests para el módulo de Ventas

- Alta todo-o-nada con verificación previa de stock
- Escritura del total en la caja abierta
- Anulación del día con devolución de stock
- Validaciones de crédito
- Tickets y clientes
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from tiendapos.core.exceptions import (
    InsufficientStockError, AlreadyVoidedError, StaleOperationError,
    DetailInsertFailedError, MovementInsertFailedError, ValidationError,
    NotFoundError, ConflictError
)
from tiendapos.modules.caja.schemas import CajaAbrirRequest
from tiendapos.modules.caja.service import CajaService
from tiendapos.modules.productos.service import ProductoService
from tiendapos.modules.ventas.schemas import VentaCreate, ItemVenta, ClienteCreate
from tiendapos.modules.ventas.service import VentaService
from tiendapos.shared.database.models import (
    Venta, DetalleVenta, MovimientoInventario, MetodoPago, EstadoVenta,
    EstadoCredito, MotivoMovimiento
)
from tiendapos.shared.utils.fechas import fecha_local_hoy


def _vender(db, vendedor, items, metodo=MetodoPago.EFECTIVO, **kwargs):
    venta_data = VentaCreate(
        items=[ItemVenta(id_producto=p.id, cantidad=c) for p, c in items],
        metodo_pago=metodo,
        **kwargs
    )
    return VentaService(db).crear_venta(venta_data, vendedor.id).venta


class TestCrearVenta:

    def test_venta_descuenta_stock_y_registra_movimientos(self, db_session, vendedor, producto, producto_b):
        venta = _vender(db_session, vendedor, [(producto, 2), (producto_b, 1)])

        db_session.refresh(producto)
        db_session.refresh(producto_b)
        assert venta.total == Decimal("250.00")
        assert venta.estado == EstadoVenta.COMPLETADA.value
        assert len(venta.detalles) == 2
        assert producto.stock_actual == 8
        assert producto_b.stock_actual == 4

        movimientos = db_session.query(MovimientoInventario).filter_by(
            id_venta=venta.id, motivo=MotivoMovimiento.VENTA.value
        ).all()
        assert sorted(m.cantidad for m in movimientos) == [1, 2]

        productos = ProductoService(db_session)
        assert productos.verificar_consistencia(producto.id).consistente
        assert productos.verificar_consistencia(producto_b.id).consistente

    def test_precio_explicito_prevalece(self, db_session, vendedor, producto):
        venta = VentaService(db_session).crear_venta(
            VentaCreate(
                items=[ItemVenta(id_producto=producto.id, cantidad=3, precio_unitario=Decimal("90.005"))],
                metodo_pago=MetodoPago.QR
            ),
            vendedor.id
        ).venta

        assert venta.detalles[0].precio_unitario == Decimal("90.01")
        assert venta.total == Decimal("270.03")

    def test_vender_todo_el_stock(self, db_session, vendedor, producto):
        _vender(db_session, vendedor, [(producto, 10)])

        db_session.refresh(producto)
        assert producto.stock_actual == 0

    def test_stock_insuficiente_no_escribe_nada(self, db_session, vendedor, producto, producto_b):
        _vender(db_session, vendedor, [(producto, 10)])

        with pytest.raises(InsufficientStockError) as exc:
            _vender(db_session, vendedor, [(producto_b, 1), (producto, 1)])

        assert exc.value.disponible == 0
        assert exc.value.solicitado == 1
        db_session.refresh(producto_b)
        assert producto_b.stock_actual == 5
        assert db_session.query(Venta).count() == 1

    def test_items_repetidos_se_suman_al_validar(self, db_session, vendedor, producto_b):
        with pytest.raises(InsufficientStockError) as exc:
            _vender(db_session, vendedor, [(producto_b, 3), (producto_b, 3)])

        assert exc.value.solicitado == 6

    def test_fallo_al_insertar_detalles(self, db_session, vendedor, producto, monkeypatch):
        service = VentaService(db_session)

        def falla(*args, **kwargs):
            raise SQLAlchemyError("lote rechazado")

        monkeypatch.setattr(service.repository, "create_detalles", falla)

        with pytest.raises(DetailInsertFailedError):
            service.crear_venta(
                VentaCreate(items=[ItemVenta(id_producto=producto.id, cantidad=1)], metodo_pago=MetodoPago.EFECTIVO),
                vendedor.id
            )

        db_session.refresh(producto)
        assert producto.stock_actual == 10
        assert db_session.query(Venta).count() == 0
        assert db_session.query(DetalleVenta).count() == 0

    def test_producto_inexistente(self, db_session, vendedor):
        with pytest.raises(NotFoundError):
            VentaService(db_session).crear_venta(
                VentaCreate(items=[ItemVenta(id_producto=999, cantidad=1)], metodo_pago=MetodoPago.EFECTIVO),
                vendedor.id
            )


class TestVentaCredito:

    def test_credito_requiere_cliente(self, db_session, vendedor, producto):
        with pytest.raises(ValidationError):
            _vender(db_session, vendedor, [(producto, 1)], MetodoPago.CREDITO, meses_credito=3)

    def test_credito_requiere_cuotas(self, db_session, vendedor, producto, cliente):
        with pytest.raises(ValidationError):
            _vender(db_session, vendedor, [(producto, 1)], MetodoPago.CREDITO, id_cliente=cliente.id)

    @pytest.mark.parametrize("meses", [0, 121])
    def test_cuotas_fuera_de_rango(self, db_session, vendedor, producto, cliente, meses):
        with pytest.raises(ValidationError):
            _vender(
                db_session, vendedor, [(producto, 1)], MetodoPago.CREDITO,
                id_cliente=cliente.id, meses_credito=meses
            )

    def test_cliente_inexistente(self, db_session, vendedor, producto):
        with pytest.raises(NotFoundError):
            _vender(
                db_session, vendedor, [(producto, 1)], MetodoPago.CREDITO,
                id_cliente=999, meses_credito=3
            )

    def test_cuota_inicial_mayor_al_total(self, db_session, vendedor, producto, cliente):
        with pytest.raises(ValidationError):
            _vender(
                db_session, vendedor, [(producto, 1)], MetodoPago.CREDITO,
                id_cliente=cliente.id, meses_credito=3, cuota_inicial=Decimal("150")
            )

    def test_credito_guarda_proyeccion_inicial(self, db_session, vendedor, producto, cliente):
        venta = _vender(
            db_session, vendedor, [(producto, 1)], MetodoPago.CREDITO,
            id_cliente=cliente.id, meses_credito=2, cuota_inicial=Decimal("20"), tasa_interes=Decimal("5")
        )

        assert venta.fecha_vencimiento is not None
        assert venta.monto_interes == Decimal("4.00")
        assert venta.total_con_interes == Decimal("108.00")
        assert venta.monto_pagado == Decimal("20.00")
        assert venta.estado_credito == EstadoCredito.PARCIAL.value

    def test_credito_no_suma_a_la_caja(self, db_session, admin, vendedor, producto, cliente):
        caja = CajaService(db_session)
        caja.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id)

        _vender(
            db_session, vendedor, [(producto, 1)], MetodoPago.CREDITO,
            id_cliente=cliente.id, meses_credito=1
        )

        assert caja.obtener_caja_abierta().arqueo.total_ventas == Decimal("0.00")


class TestCajaEnVentas:

    def test_venta_y_anulacion_actualizan_la_caja(self, db_session, admin, vendedor, producto, producto_b):
        caja = CajaService(db_session)
        caja.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("20")), admin.id)
        _vender(db_session, vendedor, [(producto, 1)])
        assert caja.obtener_caja_abierta().arqueo.total_ventas == Decimal("100.00")

        venta = _vender(db_session, vendedor, [(producto_b, 1)])
        assert caja.obtener_caja_abierta().arqueo.total_ventas == Decimal("150.00")

        VentaService(db_session).anular_venta(venta.id, admin.id, "Cliente desistió")
        assert caja.obtener_caja_abierta().arqueo.total_ventas == Decimal("100.00")

    def test_venta_sin_caja_abierta(self, db_session, vendedor, producto):
        venta = _vender(db_session, vendedor, [(producto, 1)])

        assert venta.estado == EstadoVenta.COMPLETADA.value
        assert CajaService(db_session).obtener_caja_abierta().arqueo is None

    def test_abrir_caja_incluye_ventas_previas_del_dia(self, db_session, admin, vendedor, producto):
        _vender(db_session, vendedor, [(producto, 2)])

        response = CajaService(db_session).abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id)

        assert response.arqueo.total_ventas == Decimal("200.00")


class TestAnularVenta:

    def test_anulacion_devuelve_stock(self, db_session, admin, vendedor, producto):
        venta = _vender(db_session, vendedor, [(producto, 4)])

        response = VentaService(db_session).anular_venta(venta.id, admin.id, "Error de cobro")

        db_session.refresh(producto)
        assert response.venta.estado == EstadoVenta.ANULADA.value
        assert producto.stock_actual == 10
        devolucion = db_session.query(MovimientoInventario).filter_by(
            id_venta=venta.id, motivo=MotivoMovimiento.DEVOLUCION.value
        ).one()
        assert devolucion.cantidad == 4
        assert "Error de cobro" in devolucion.observacion
        assert ProductoService(db_session).verificar_consistencia(producto.id).consistente

    def test_anular_dos_veces(self, db_session, admin, vendedor, producto):
        venta = _vender(db_session, vendedor, [(producto, 1)])
        service = VentaService(db_session)
        service.anular_venta(venta.id, admin.id, "Primera")

        with pytest.raises(AlreadyVoidedError):
            service.anular_venta(venta.id, admin.id, "Segunda")

        db_session.refresh(producto)
        assert producto.stock_actual == 10

    def test_solo_ventas_del_dia(self, db_session, admin, vendedor, producto):
        venta = _vender(db_session, vendedor, [(producto, 1)])
        registro = db_session.get(Venta, venta.id)
        registro.fecha = fecha_local_hoy() - timedelta(days=1)
        db_session.commit()

        with pytest.raises(StaleOperationError):
            VentaService(db_session).anular_venta(venta.id, admin.id, "Tarde")

        db_session.refresh(registro)
        assert registro.estado == EstadoVenta.COMPLETADA.value

    def test_fallo_de_movimiento_revierte_toda_la_anulacion(self, db_session, admin, vendedor, producto, producto_b, monkeypatch):
        venta = _vender(db_session, vendedor, [(producto, 2), (producto_b, 1)])
        service = VentaService(db_session)
        original = service.inventory.agregar_movimiento
        llamadas = []

        def falla_en_el_segundo(*args, **kwargs):
            llamadas.append(args)
            if len(llamadas) == 2:
                raise SQLAlchemyError("insert rechazado")
            return original(*args, **kwargs)

        monkeypatch.setattr(service.inventory, "agregar_movimiento", falla_en_el_segundo)

        with pytest.raises(MovementInsertFailedError):
            service.anular_venta(venta.id, admin.id, "No debería aplicarse")

        db_session.refresh(producto)
        db_session.refresh(producto_b)
        assert producto.stock_actual == 8
        assert producto_b.stock_actual == 4
        assert db_session.get(Venta, venta.id).estado == EstadoVenta.COMPLETADA.value

    def test_venta_inexistente(self, db_session, admin):
        with pytest.raises(NotFoundError):
            VentaService(db_session).anular_venta(999, admin.id, "No existe")


class TestConsultasYTickets:

    def test_listado_excluye_anuladas_del_monto(self, db_session, admin, vendedor, producto, producto_b):
        _vender(db_session, vendedor, [(producto, 1)])
        venta = _vender(db_session, vendedor, [(producto_b, 1)])
        service = VentaService(db_session)
        service.anular_venta(venta.id, admin.id, "Duplicada")

        listado = service.listar_ventas()
        assert listado.total == 2
        assert listado.monto_total == Decimal("100.00")

        assert service.ventas_del_dia().total == 1

    def test_estadisticas_por_producto(self, db_session, vendedor, producto, producto_b):
        _vender(db_session, vendedor, [(producto, 2), (producto_b, 1)])
        _vender(db_session, vendedor, [(producto, 1)])

        stats = {p.codigo: p for p in VentaService(db_session).estadisticas_productos().productos}

        assert stats["P-001"].cantidad_vendida == 3
        assert stats["P-001"].monto_total == Decimal("300.00")
        assert stats["P-002"].cantidad_vendida == 1

    def test_ticket_de_venta(self, db_session, vendedor, producto, cliente):
        venta = _vender(
            db_session, vendedor, [(producto, 2)], MetodoPago.CREDITO,
            id_cliente=cliente.id, meses_credito=1
        )

        ticket = VentaService(db_session).ticket_venta(venta.id)

        assert ticket.titulo == "Nota de venta"
        assert ticket.referencia == venta.id
        assert ticket.cliente == "Juan Pérez"
        assert ticket.vendedor == "Caja 1"
        assert ticket.lineas[0].producto == "Gaseosa 2L"
        assert ticket.total == Decimal("200.00")

    def test_ticket_de_carrito_no_toca_stock(self, db_session, producto, producto_b):
        ticket = VentaService(db_session).ticket_carrito([
            ItemVenta(id_producto=producto.id, cantidad=1),
            ItemVenta(id_producto=producto_b.id, cantidad=3)
        ])

        db_session.refresh(producto_b)
        assert ticket.titulo == "Pre-cuenta"
        assert ticket.total == Decimal("250.00")
        assert producto_b.stock_actual == 5


class TestClientes:

    def test_crear_y_buscar(self, db_session):
        service = VentaService(db_session)
        service.crear_cliente(ClienteCreate(nombre="  María Quispe ", ci_nit="998877"))

        resultado = service.listar_clientes("quispe")

        assert resultado.total == 1
        assert resultado.data[0].nombre == "María Quispe"

    def test_documento_duplicado(self, db_session, cliente):
        with pytest.raises(ConflictError):
            VentaService(db_session).crear_cliente(ClienteCreate(nombre="Otro", ci_nit="1234567"))


class TestVentaEndpoints:

    def test_vendedor_registra_venta(self, client, vendedor_headers, producto):
        response = client.post(
            "/api/v1/ventas/",
            json={"items": [{"id_producto": producto.id, "cantidad": 2}], "metodo_pago": "efectivo"},
            headers=vendedor_headers
        )

        assert response.status_code == 201
        assert response.json()["venta"]["total"] == "200.00"

    def test_stock_insuficiente(self, client, vendedor_headers, producto):
        response = client.post(
            "/api/v1/ventas/",
            json={"items": [{"id_producto": producto.id, "cantidad": 11}], "metodo_pago": "efectivo"},
            headers=vendedor_headers
        )

        assert response.status_code == 409
        assert response.json()["details"] == {"producto": "Gaseosa 2L", "disponible": 10, "solicitado": 11}

    def test_solo_admin_anula(self, client, vendedor_headers, db_session, vendedor, producto):
        venta = _vender(db_session, vendedor, [(producto, 1)])

        response = client.post(
            f"/api/v1/ventas/{venta.id}/anular",
            json={"motivo": "Intento"},
            headers=vendedor_headers
        )

        assert response.status_code == 403

    def test_distribuidor_sin_acceso(self, client, mayorista_headers):
        response = client.get("/api/v1/ventas/", headers=mayorista_headers)
        assert response.status_code == 403
