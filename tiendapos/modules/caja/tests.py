"""
Tests para el módulo de Caja (arqueo diario)
"""

import pytest
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from tiendapos.core.exceptions import AlreadyOpenError, NotOpenError, NotFoundError, DependencyFailureError
from tiendapos.modules.creditos.schemas import PagoCreditoCreate
from tiendapos.modules.creditos.service import CreditoService
from tiendapos.modules.caja.schemas import CajaAbrirRequest, CajaCerrarRequest, CajaUpdateRequest
from tiendapos.modules.caja.service import CajaService
from tiendapos.modules.ventas.schemas import VentaCreate, ItemVenta
from tiendapos.modules.ventas.service import VentaService
from tiendapos.shared.database.models import ArqueoCaja, EstadoArqueo, MetodoPago


def _vender(db, vendedor, producto, cantidad, metodo=MetodoPago.EFECTIVO, **kwargs):
    return VentaService(db).crear_venta(
        VentaCreate(
            items=[ItemVenta(id_producto=producto.id, cantidad=cantidad)],
            metodo_pago=metodo,
            **kwargs
        ),
        vendedor.id
    ).venta


class TestCicloDeCaja:

    def test_abrir_caja(self, db_session, admin):
        response = CajaService(db_session).abrir_caja(
            CajaAbrirRequest(monto_inicial=Decimal("150.50"), observacion="Turno mañana"),
            admin.id
        )

        assert response.arqueo.estado == EstadoArqueo.ABIERTO.value
        assert response.arqueo.monto_inicial == Decimal("150.50")
        assert response.arqueo.total_ventas == Decimal("0.00")
        assert len(response.arqueo.hora_apertura) == 5

    def test_una_sola_caja_abierta_por_dia(self, db_session, admin):
        service = CajaService(db_session)
        service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id)

        with pytest.raises(AlreadyOpenError):
            service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("10")), admin.id)

        assert db_session.query(ArqueoCaja).count() == 1

    def test_cerrar_calcula_diferencia(self, db_session, admin, vendedor, producto):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("50")), admin.id).arqueo
        _vender(db_session, vendedor, producto, 2)

        response = service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("245")))

        assert response.arqueo.estado == EstadoArqueo.CERRADO.value
        assert response.arqueo.total_ventas == Decimal("200.00")
        assert response.arqueo.diferencia == Decimal("-5.00")
        assert response.arqueo.hora_cierre is not None

    def test_cerrar_dos_veces(self, db_session, admin):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id).arqueo
        service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("0")))

        with pytest.raises(NotOpenError):
            service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("0")))

    def test_reabrir_tras_cierre(self, db_session, admin):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id).arqueo
        service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("0")))

        segunda = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("30")), admin.id)

        assert segunda.arqueo.id != arqueo.id

    def test_venta_tras_cierre_no_toca_caja_cerrada(self, db_session, admin, vendedor, producto):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id).arqueo
        service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("0")))

        _vender(db_session, vendedor, producto, 1)

        assert service.obtener_caja(arqueo.id).arqueo.total_ventas == Decimal("0.00")

    def test_caja_inexistente(self, db_session):
        with pytest.raises(NotFoundError):
            CajaService(db_session).obtener_caja(999)


class TestCorreccionesDeCaja:

    def test_actualizar_recalcula_diferencia(self, db_session, admin):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("100")), admin.id).arqueo
        service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("100")))

        response = service.actualizar_caja(arqueo.id, CajaUpdateRequest(monto_inicial=Decimal("80")))

        assert response.arqueo.diferencia == Decimal("20.00")

    def test_recalcular_total_desde_ventas(self, db_session, admin, vendedor, producto):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id).arqueo
        _vender(db_session, vendedor, producto, 1)

        registro = db_session.get(ArqueoCaja, arqueo.id)
        registro.total_ventas = Decimal("999")
        db_session.commit()

        response = service.recalcular_total_ventas(arqueo.id)

        assert response.arqueo.total_ventas == Decimal("100.00")

    def test_resumen_por_metodo_excluye_credito_de_caja(self, db_session, vendedor, producto, producto_b, cliente):
        _vender(db_session, vendedor, producto, 1)
        _vender(db_session, vendedor, producto_b, 1, MetodoPago.QR)
        _vender(
            db_session, vendedor, producto, 2, MetodoPago.CREDITO,
            id_cliente=cliente.id, meses_credito=2
        )

        resumen = CajaService(db_session).resumen_metodos_pago()

        assert resumen.totales[MetodoPago.EFECTIVO.value] == Decimal("100.00")
        assert resumen.totales[MetodoPago.QR.value] == Decimal("50.00")
        assert resumen.totales[MetodoPago.CREDITO.value] == Decimal("200.00")
        assert resumen.cantidad_ventas[MetodoPago.TRANSFERENCIA.value] == 0
        assert resumen.total_caja == Decimal("150.00")

    def test_resumen_incluye_cobros_de_credito(self, db_session, vendedor, producto, cliente):
        _vender(db_session, vendedor, producto, 1)
        credito = _vender(
            db_session, vendedor, producto, 2, MetodoPago.CREDITO,
            id_cliente=cliente.id, meses_credito=2, cuota_inicial=Decimal("50")
        )
        CreditoService(db_session).registrar_pago(
            credito.id, PagoCreditoCreate(monto_pagado=Decimal("30"), numero_cuota=1), vendedor.id
        )

        resumen = CajaService(db_session).resumen_metodos_pago()

        assert resumen.total_caja == Decimal("100.00")
        assert resumen.cuotas_iniciales_credito == Decimal("50.00")
        assert resumen.pagos_cuotas_credito == Decimal("30.00")
        assert resumen.ingresos_credito == Decimal("80.00")
        assert resumen.ingresos_totales == Decimal("180.00")

    def test_cobros_de_venta_anulada_no_cuentan(self, db_session, admin, vendedor, producto, cliente):
        credito = _vender(
            db_session, vendedor, producto, 1, MetodoPago.CREDITO,
            id_cliente=cliente.id, meses_credito=1, cuota_inicial=Decimal("20")
        )
        VentaService(db_session).anular_venta(credito.id, admin.id, "Error de carga")

        resumen = CajaService(db_session).resumen_metodos_pago()

        assert resumen.ingresos_credito == Decimal("0.00")


class TestFallasDeCaja:

    def test_cierre_fallido_deja_la_caja_abierta(self, db_session, admin, monkeypatch):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("10")), admin.id).arqueo

        def falla(*args, **kwargs):
            raise SQLAlchemyError("update rechazado")

        monkeypatch.setattr(service, "_calcular_diferencia", falla)
        with pytest.raises(DependencyFailureError):
            service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("10")))

        registro = service.obtener_caja(arqueo.id).arqueo
        assert registro.estado == EstadoArqueo.ABIERTO.value
        assert registro.efectivo_real is None

    def test_actualizar_fallido_no_guarda_cambios(self, db_session, admin, monkeypatch):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("10")), admin.id).arqueo
        service.cerrar_caja(arqueo.id, CajaCerrarRequest(efectivo_real=Decimal("10")))

        def falla(*args, **kwargs):
            raise SQLAlchemyError("update rechazado")

        monkeypatch.setattr(service, "_calcular_diferencia", falla)
        with pytest.raises(DependencyFailureError):
            service.actualizar_caja(arqueo.id, CajaUpdateRequest(monto_inicial=Decimal("99")))

        assert service.obtener_caja(arqueo.id).arqueo.monto_inicial == Decimal("10.00")

    def test_recalcular_fallido(self, db_session, admin, monkeypatch):
        service = CajaService(db_session)
        arqueo = service.abrir_caja(CajaAbrirRequest(monto_inicial=Decimal("0")), admin.id).arqueo

        def falla(*args, **kwargs):
            raise SQLAlchemyError("consulta rechazada")

        monkeypatch.setattr(service.repository, "total_ventas_caja", falla)
        with pytest.raises(DependencyFailureError):
            service.recalcular_total_ventas(arqueo.id)

    def test_caja_inexistente_sigue_siendo_404(self, db_session):
        with pytest.raises(NotFoundError):
            CajaService(db_session).cerrar_caja(999, CajaCerrarRequest(efectivo_real=Decimal("0")))


class TestCajaEndpoints:

    def test_abrir_requiere_admin(self, client, vendedor_headers):
        response = client.post("/api/v1/caja/abrir", json={"monto_inicial": "0"}, headers=vendedor_headers)
        assert response.status_code == 403

    def test_abrir_dos_veces_devuelve_409(self, client, admin_headers):
        primera = client.post("/api/v1/caja/abrir", json={"monto_inicial": "10"}, headers=admin_headers)
        segunda = client.post("/api/v1/caja/abrir", json={"monto_inicial": "10"}, headers=admin_headers)

        assert primera.status_code == 201
        assert segunda.status_code == 409
        assert segunda.json()["error_code"] == "already_open"

    def test_vendedor_consulta_caja_abierta(self, client, vendedor_headers):
        response = client.get("/api/v1/caja/abierta", headers=vendedor_headers)

        assert response.status_code == 200
        assert response.json()["arqueo"] is None
