"""
Tests para el módulo de Mayoristas

- Asientos de venta con total = (vendida + aumento) x precio
- Arqueo por período con arrastre de saldos a preregistros
- Entregas contra preregistros (todo o nada)
- Pagos pendiente -> verificado
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from tiendapos.core.exceptions import (
    AlreadyOpenError, NotOpenError, NotFoundError, ValidationError, ConflictError
)
from tiendapos.modules.mayoristas.schemas import (
    VentaMayoristaCreate, VentaMayoristaUpdate,
    ArqueoMayoristaAbrirRequest, ArqueoMayoristaCerrarRequest, SaldoItem,
    PreregistroMayoristaCreate, EntregaMayoristaRequest, EntregaItem,
    PagoMayoristaCreate, PagoMayoristaVerificarRequest, PagoMayoristaUpdate
)
from tiendapos.modules.mayoristas.service import MayoristaService, calcular_total
from tiendapos.shared.database.models import (
    PreregistroMayorista, SaldoRestanteMayorista, EstadoArqueo, EstadoPagoMayorista
)
from tiendapos.shared.utils.fechas import fecha_local_hoy


def _registrar(db, mayorista, producto, vendida, aumento=0, **kwargs):
    return MayoristaService(db).registrar_venta(
        VentaMayoristaCreate(
            id_mayorista=mayorista.id,
            id_producto=producto.id,
            cantidad_vendida=vendida,
            cantidad_aumento=aumento,
            **kwargs
        )
    ).venta


class TestVentasMayorista:

    def test_calcular_total(self):
        assert calcular_total(3, 2, Decimal("12.345")) == Decimal("61.73")
        assert calcular_total(0, 0, Decimal("10")) == Decimal("0.00")

    def test_precio_por_mayor_por_defecto(self, db_session, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 5, 1)

        assert venta.precio_por_mayor == Decimal("80.00")
        assert venta.total == Decimal("480.00")

    def test_sin_precio_mayor_usa_precio_unitario(self, db_session, mayorista, producto_b):
        venta = _registrar(db_session, mayorista, producto_b, 2)

        assert venta.precio_por_mayor == Decimal("50.00")
        assert venta.total == Decimal("100.00")

    def test_no_descuenta_stock_de_tienda(self, db_session, mayorista, producto):
        _registrar(db_session, mayorista, producto, 50)

        db_session.refresh(producto)
        assert producto.stock_actual == 10

    def test_sin_cantidades(self, db_session, mayorista, producto):
        with pytest.raises(ValidationError):
            _registrar(db_session, mayorista, producto, 0, 0)

    def test_usuario_que_no_es_mayorista(self, db_session, minorista, producto):
        with pytest.raises(NotFoundError):
            _registrar(db_session, minorista, producto, 1)

    def test_actualizar_recalcula_total(self, db_session, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 1)

        actualizada = MayoristaService(db_session).actualizar_venta(
            venta.id, VentaMayoristaUpdate(cantidad_aumento=2, precio_por_mayor=Decimal("75"))
        ).venta

        assert actualizada.total == Decimal("225.00")

    def test_resumen_del_periodo(self, db_session, mayorista, otro_mayorista, producto, producto_b):
        hoy = fecha_local_hoy()
        _registrar(db_session, mayorista, producto, 2, 1, fecha=hoy - timedelta(days=3))
        _registrar(db_session, mayorista, producto_b, 4, fecha=hoy)
        _registrar(db_session, mayorista, producto, 9, fecha=hoy - timedelta(days=10))
        _registrar(db_session, otro_mayorista, producto, 7, fecha=hoy)

        resumen = MayoristaService(db_session).resumen_periodo(mayorista.id, hoy - timedelta(days=5), hoy)

        assert resumen.cantidad_registros == 2
        assert resumen.unidades_vendidas == 6
        assert resumen.unidades_aumento == 1
        assert resumen.monto_ventas == Decimal("360.00")
        assert resumen.monto_total == Decimal("440.00")

    def test_resumen_rango_invertido(self, db_session, mayorista):
        hoy = fecha_local_hoy()
        with pytest.raises(ValidationError):
            MayoristaService(db_session).resumen_periodo(mayorista.id, hoy, hoy - timedelta(days=1))

    def test_ticket_del_dia(self, db_session, mayorista, producto, producto_b):
        _registrar(db_session, mayorista, producto, 1)
        _registrar(db_session, mayorista, producto_b, 2, 1)

        ticket = MayoristaService(db_session).ticket_ventas(mayorista.id)

        assert ticket.titulo == "Liquidación mayorista"
        assert ticket.vendedor == "Distribuidora Norte"
        assert len(ticket.lineas) == 2
        assert ticket.total == Decimal("230.00")

    def test_ticket_sin_ventas(self, db_session, mayorista):
        with pytest.raises(NotFoundError):
            MayoristaService(db_session).ticket_ventas(mayorista.id)


class TestArqueoMayorista:

    def test_un_arqueo_abierto_por_mayorista(self, db_session, mayorista, otro_mayorista):
        service = MayoristaService(db_session)
        service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id))

        with pytest.raises(AlreadyOpenError):
            service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id))

        otro = service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=otro_mayorista.id))
        assert otro.arqueo.estado == EstadoArqueo.ABIERTO.value

    def test_cerrar_suma_ventas_del_periodo(self, db_session, mayorista, producto, producto_b):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        arqueo = service.abrir_arqueo(
            ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy - timedelta(days=6))
        ).arqueo
        _registrar(db_session, mayorista, producto, 2, fecha=hoy - timedelta(days=4))
        _registrar(db_session, mayorista, producto_b, 1, fecha=hoy)
        _registrar(db_session, mayorista, producto, 5, fecha=hoy - timedelta(days=8))

        cerrado = service.cerrar_arqueo(
            arqueo.id,
            ArqueoMayoristaCerrarRequest(
                saldos_restantes=[SaldoItem(id_producto=producto.id, cantidad_restante=3)],
                efectivo_recibido=Decimal("210")
            )
        ).arqueo

        assert cerrado.estado == EstadoArqueo.CERRADO.value
        assert cerrado.fecha_fin == hoy
        assert cerrado.ventas_del_periodo == Decimal("210.00")
        assert cerrado.saldos_restantes[0].cantidad_restante == 3
        assert db_session.query(SaldoRestanteMayorista).filter_by(id_arqueo=arqueo.id).count() == 1

    def test_cerrar_dos_veces(self, db_session, mayorista):
        service = MayoristaService(db_session)
        arqueo = service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id)).arqueo
        service.cerrar_arqueo(arqueo.id, ArqueoMayoristaCerrarRequest(efectivo_recibido=Decimal("0")))

        with pytest.raises(NotOpenError):
            service.cerrar_arqueo(arqueo.id, ArqueoMayoristaCerrarRequest(efectivo_recibido=Decimal("0")))

    def test_cierre_anterior_al_inicio(self, db_session, mayorista):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        arqueo = service.abrir_arqueo(
            ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy)
        ).arqueo

        with pytest.raises(ValidationError):
            service.cerrar_arqueo(
                arqueo.id,
                ArqueoMayoristaCerrarRequest(efectivo_recibido=Decimal("0"), fecha_fin=hoy - timedelta(days=1))
            )

    def test_saldo_de_producto_inexistente(self, db_session, mayorista):
        service = MayoristaService(db_session)
        arqueo = service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id)).arqueo

        with pytest.raises(NotFoundError):
            service.cerrar_arqueo(
                arqueo.id,
                ArqueoMayoristaCerrarRequest(
                    saldos_restantes=[SaldoItem(id_producto=999, cantidad_restante=1)],
                    efectivo_recibido=Decimal("0")
                )
            )

    def test_saldos_duplicados_rechazados(self):
        with pytest.raises(ValueError):
            ArqueoMayoristaCerrarRequest(
                saldos_restantes=[
                    SaldoItem(id_producto=1, cantidad_restante=1),
                    SaldoItem(id_producto=1, cantidad_restante=2)
                ],
                efectivo_recibido=Decimal("0")
            )

    def test_saldos_restantes_siembran_el_siguiente_periodo(self, db_session, mayorista, producto, producto_b):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        primero = service.abrir_arqueo(
            ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy - timedelta(days=7))
        ).arqueo
        service.cerrar_arqueo(
            primero.id,
            ArqueoMayoristaCerrarRequest(
                saldos_restantes=[
                    SaldoItem(id_producto=producto.id, cantidad_restante=4),
                    SaldoItem(id_producto=producto_b.id, cantidad_restante=0)
                ],
                efectivo_recibido=Decimal("0"),
                fecha_fin=hoy - timedelta(days=1)
            )
        )

        segundo = service.abrir_arqueo(
            ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy)
        ).arqueo

        assert {(s.id_producto, s.cantidad_restante) for s in segundo.saldos_iniciales} == {
            (producto.id, 4), (producto_b.id, 0)
        }
        preregistros = db_session.query(PreregistroMayorista).filter_by(
            id_mayorista=mayorista.id, fecha=hoy
        ).all()
        assert [(p.id_producto, p.cantidad) for p in preregistros] == [(producto.id, 4)]

    def test_siembra_respeta_preregistro_existente(self, db_session, mayorista, producto):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        primero = service.abrir_arqueo(
            ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy - timedelta(days=2))
        ).arqueo
        service.cerrar_arqueo(
            primero.id,
            ArqueoMayoristaCerrarRequest(
                saldos_restantes=[SaldoItem(id_producto=producto.id, cantidad_restante=4)],
                efectivo_recibido=Decimal("0"),
                fecha_fin=hoy - timedelta(days=1)
            )
        )
        service.guardar_preregistro(
            PreregistroMayoristaCreate(id_mayorista=mayorista.id, id_producto=producto.id, cantidad=9, fecha=hoy)
        )

        service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy))

        preregistro = db_session.query(PreregistroMayorista).filter_by(
            id_mayorista=mayorista.id, fecha=hoy
        ).one()
        assert preregistro.cantidad == 9

    def test_listar_saldos(self, db_session, mayorista, producto):
        service = MayoristaService(db_session)
        arqueo = service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id)).arqueo
        service.cerrar_arqueo(
            arqueo.id,
            ArqueoMayoristaCerrarRequest(
                saldos_restantes=[SaldoItem(id_producto=producto.id, cantidad_restante=2)],
                efectivo_recibido=Decimal("0")
            )
        )

        saldos = service.listar_saldos(mayorista.id, id_arqueo=arqueo.id)

        assert saldos.total == 1
        assert saldos.data[0].cantidad_restante == 2


class TestPeriodosCerrados:

    def _cerrar_periodo(self, service, mayorista, desde, hasta):
        arqueo = service.abrir_arqueo(
            ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=desde)
        ).arqueo
        return service.cerrar_arqueo(
            arqueo.id, ArqueoMayoristaCerrarRequest(efectivo_recibido=Decimal("0"), fecha_fin=hasta)
        ).arqueo

    def test_nuevo_periodo_no_se_solapa_con_el_cerrado(self, db_session, mayorista, producto):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        _registrar(db_session, mayorista, producto, 1, fecha=hoy - timedelta(days=2))
        cerrado = self._cerrar_periodo(service, mayorista, hoy - timedelta(days=5), hoy)
        assert cerrado.ventas_del_periodo == Decimal("80.00")

        with pytest.raises(ValidationError):
            service.abrir_arqueo(
                ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy - timedelta(days=5))
            )
        with pytest.raises(ValidationError):
            service.abrir_arqueo(ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy))

        assert service.obtener_arqueo_abierto(mayorista.id).arqueo is None

    def test_periodo_siguiente_empieza_tras_el_cierre(self, db_session, mayorista, producto):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        _registrar(db_session, mayorista, producto, 1, fecha=hoy - timedelta(days=2))
        self._cerrar_periodo(service, mayorista, hoy - timedelta(days=5), hoy - timedelta(days=1))
        _registrar(db_session, mayorista, producto, 2, fecha=hoy)

        segundo = self._cerrar_periodo(service, mayorista, hoy, hoy)

        assert segundo.ventas_del_periodo == Decimal("160.00")

    def test_ventas_de_periodo_cerrado_congeladas(self, db_session, mayorista, producto):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        venta = _registrar(db_session, mayorista, producto, 1, fecha=hoy - timedelta(days=2))
        self._cerrar_periodo(service, mayorista, hoy - timedelta(days=5), hoy - timedelta(days=1))

        with pytest.raises(ConflictError):
            service.actualizar_venta(venta.id, VentaMayoristaUpdate(cantidad_vendida=9))
        with pytest.raises(ConflictError):
            service.eliminar_venta(venta.id)
        with pytest.raises(ConflictError):
            _registrar(db_session, mayorista, producto, 1, fecha=hoy - timedelta(days=3))

        assert service.obtener_venta(venta.id).venta.total == Decimal("80.00")

    def test_ventas_fuera_del_periodo_cerrado_editables(self, db_session, mayorista, producto):
        hoy = fecha_local_hoy()
        service = MayoristaService(db_session)
        self._cerrar_periodo(service, mayorista, hoy - timedelta(days=5), hoy - timedelta(days=1))
        venta = _registrar(db_session, mayorista, producto, 1)

        actualizada = service.actualizar_venta(venta.id, VentaMayoristaUpdate(cantidad_vendida=2)).venta

        assert actualizada.total == Decimal("160.00")


class TestPreregistrosMayorista:

    def test_guardar_reemplaza_cantidad(self, db_session, mayorista, producto):
        service = MayoristaService(db_session)
        data = dict(id_mayorista=mayorista.id, id_producto=producto.id)
        service.guardar_preregistro(PreregistroMayoristaCreate(cantidad=3, **data))
        service.guardar_preregistro(PreregistroMayoristaCreate(cantidad=7, **data))

        listado = service.listar_preregistros(id_mayorista=mayorista.id)

        assert listado.total == 1
        assert listado.data[0].cantidad == 7

    def test_entrega_suma_aumento(self, db_session, mayorista, producto):
        service = MayoristaService(db_session)
        service.guardar_preregistro(
            PreregistroMayoristaCreate(id_mayorista=mayorista.id, id_producto=producto.id, cantidad=3)
        )

        service.aplicar_entrega(EntregaMayoristaRequest(
            id_mayorista=mayorista.id, items=[EntregaItem(id_producto=producto.id, cantidad=2)]
        ))
        response = service.aplicar_entrega(EntregaMayoristaRequest(
            id_mayorista=mayorista.id, items=[EntregaItem(id_producto=producto.id, cantidad=5)]
        ))

        assert response.data[0].aumento == 7

    def test_entrega_sin_preregistro_no_aplica_nada(self, db_session, mayorista, producto, producto_b):
        service = MayoristaService(db_session)
        service.guardar_preregistro(
            PreregistroMayoristaCreate(id_mayorista=mayorista.id, id_producto=producto.id, cantidad=3)
        )

        with pytest.raises(ValidationError) as exc:
            service.aplicar_entrega(EntregaMayoristaRequest(
                id_mayorista=mayorista.id,
                items=[
                    EntregaItem(id_producto=producto.id, cantidad=2),
                    EntregaItem(id_producto=producto_b.id, cantidad=1)
                ]
            ))

        assert exc.value.extra == {"productos": [producto_b.id]}
        assert service.listar_preregistros(id_mayorista=mayorista.id).data[0].aumento == 0

    def test_eliminar_preregistro(self, db_session, mayorista, producto):
        service = MayoristaService(db_session)
        preregistro = service.guardar_preregistro(
            PreregistroMayoristaCreate(id_mayorista=mayorista.id, id_producto=producto.id, cantidad=3)
        )

        service.eliminar_preregistro(preregistro.id)

        with pytest.raises(NotFoundError):
            service.eliminar_preregistro(preregistro.id)


class TestPagosMayorista:

    def test_pago_pendiente_por_el_total(self, db_session, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 3)

        pago = MayoristaService(db_session).crear_pago(PagoMayoristaCreate(id_venta=venta.id)).pago

        assert pago.estado == EstadoPagoMayorista.PENDIENTE.value
        assert pago.monto_esperado == Decimal("240.00")
        assert pago.id_mayorista == mayorista.id

    def test_un_pago_por_venta(self, db_session, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 3)
        service = MayoristaService(db_session)
        service.crear_pago(PagoMayoristaCreate(id_venta=venta.id))

        with pytest.raises(ConflictError):
            service.crear_pago(PagoMayoristaCreate(id_venta=venta.id))

    def test_verificar_registra_diferencia(self, db_session, admin, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 3)
        service = MayoristaService(db_session)
        pago = service.crear_pago(PagoMayoristaCreate(id_venta=venta.id)).pago

        verificado = service.verificar_pago(
            pago.id, admin.id, PagoMayoristaVerificarRequest(monto_recibido=Decimal("230"))
        ).pago

        assert verificado.estado == EstadoPagoMayorista.VERIFICADO.value
        assert verificado.diferencia == Decimal("-10.00")
        assert verificado.id_administrador == admin.id
        assert verificado.fecha_verificacion is not None

    def test_verificacion_irreversible(self, db_session, admin, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 3)
        service = MayoristaService(db_session)
        pago = service.crear_pago(PagoMayoristaCreate(id_venta=venta.id)).pago
        service.verificar_pago(pago.id, admin.id, PagoMayoristaVerificarRequest(monto_recibido=Decimal("240")))

        with pytest.raises(ConflictError):
            service.verificar_pago(pago.id, admin.id, PagoMayoristaVerificarRequest(monto_recibido=Decimal("1")))
        with pytest.raises(ConflictError):
            service.actualizar_venta(venta.id, VentaMayoristaUpdate(cantidad_vendida=1))
        with pytest.raises(ConflictError):
            service.eliminar_venta(venta.id)

    def test_corregir_monto_solo_si_verificado(self, db_session, admin, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 3)
        service = MayoristaService(db_session)
        pago = service.crear_pago(PagoMayoristaCreate(id_venta=venta.id)).pago

        with pytest.raises(ConflictError):
            service.actualizar_pago(pago.id, PagoMayoristaUpdate(monto_recibido=Decimal("240")))

        service.verificar_pago(pago.id, admin.id, PagoMayoristaVerificarRequest(monto_recibido=Decimal("200")))
        corregido = service.actualizar_pago(pago.id, PagoMayoristaUpdate(monto_recibido=Decimal("240"))).pago

        assert corregido.diferencia == Decimal("0.00")

    def test_editar_venta_actualiza_pago_pendiente(self, db_session, mayorista, producto):
        venta = _registrar(db_session, mayorista, producto, 3)
        service = MayoristaService(db_session)
        pago = service.crear_pago(PagoMayoristaCreate(id_venta=venta.id)).pago

        service.actualizar_venta(venta.id, VentaMayoristaUpdate(cantidad_vendida=5))

        assert service.obtener_pago(pago.id).pago.monto_esperado == Decimal("400.00")

    def test_listar_pendientes(self, db_session, admin, mayorista, producto):
        service = MayoristaService(db_session)
        primera = _registrar(db_session, mayorista, producto, 1)
        segunda = _registrar(db_session, mayorista, producto, 2)
        pago = service.crear_pago(PagoMayoristaCreate(id_venta=primera.id)).pago
        service.crear_pago(PagoMayoristaCreate(id_venta=segunda.id))
        service.verificar_pago(pago.id, admin.id, PagoMayoristaVerificarRequest(monto_recibido=Decimal("80")))

        assert service.listar_pagos(mayorista.id, EstadoPagoMayorista.PENDIENTE).total == 1


class TestMayoristaEndpoints:

    def test_mayorista_registra_su_venta(self, client, mayorista_headers, mayorista, producto):
        response = client.post(
            "/api/v1/mayoristas/ventas",
            json={"id_mayorista": mayorista.id, "id_producto": producto.id, "cantidad_vendida": 2},
            headers=mayorista_headers
        )

        assert response.status_code == 201
        assert response.json()["venta"]["total"] == "160.00"

    def test_mayorista_no_registra_para_otro(self, client, mayorista_headers, otro_mayorista, producto):
        response = client.post(
            "/api/v1/mayoristas/ventas",
            json={"id_mayorista": otro_mayorista.id, "id_producto": producto.id, "cantidad_vendida": 2},
            headers=mayorista_headers
        )
        assert response.status_code == 403

    def test_listado_limitado_al_propio_mayorista(
        self, client, db_session, mayorista_headers, mayorista, otro_mayorista, producto
    ):
        _registrar(db_session, mayorista, producto, 1)
        _registrar(db_session, otro_mayorista, producto, 1)

        response = client.get("/api/v1/mayoristas/ventas", headers=mayorista_headers)

        assert response.status_code == 200
        assert {v["id_mayorista"] for v in response.json()["data"]} == {mayorista.id}

    def test_abrir_arqueo_requiere_admin(self, client, mayorista_headers, mayorista):
        response = client.post(
            "/api/v1/mayoristas/arqueos/abrir",
            json={"id_mayorista": mayorista.id},
            headers=mayorista_headers
        )
        assert response.status_code == 403

    def test_vendedor_sin_acceso(self, client, vendedor_headers):
        response = client.get("/api/v1/mayoristas/ventas", headers=vendedor_headers)
        assert response.status_code == 403
