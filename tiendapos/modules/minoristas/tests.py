"""
Tests para el módulo de Minoristas (liquidación diaria)
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from tiendapos.core.exceptions import AlreadyOpenError, NotOpenError, NotFoundError, ValidationError, ConflictError
from tiendapos.modules.minoristas.schemas import (
    VentaMinoristaCreate, VentaMinoristaUpdate,
    ArqueoMinoristaAbrirRequest, ArqueoMinoristaCerrarRequest, SaldoItem,
    PreregistroMinoristaCreate, EntregaMinoristaRequest, EntregaItem
)
from tiendapos.modules.minoristas.service import MinoristaService
from tiendapos.shared.database.models import PreregistroMinorista, EstadoArqueo
from tiendapos.shared.utils.fechas import fecha_local_hoy


def _registrar(db, minorista, producto, vendida, aumento=0, **kwargs):
    return MinoristaService(db).registrar_venta(
        VentaMinoristaCreate(
            id_minorista=minorista.id,
            id_producto=producto.id,
            cantidad_vendida=vendida,
            cantidad_aumento=aumento,
            **kwargs
        )
    ).venta


class TestVentasMinorista:

    def test_total_con_precio_unitario(self, db_session, minorista, producto):
        venta = _registrar(db_session, minorista, producto, 2, 1)

        assert venta.precio_unitario == Decimal("100.00")
        assert venta.total == Decimal("300.00")

    def test_precio_explicito(self, db_session, minorista, producto):
        venta = _registrar(db_session, minorista, producto, 2, precio_unitario=Decimal("95.50"))
        assert venta.total == Decimal("191.00")

    def test_usuario_que_no_es_minorista(self, db_session, mayorista, producto):
        with pytest.raises(NotFoundError):
            _registrar(db_session, mayorista, producto, 1)

    def test_actualizar_recalcula_total(self, db_session, minorista, producto_b):
        venta = _registrar(db_session, minorista, producto_b, 1)

        actualizada = MinoristaService(db_session).actualizar_venta(
            venta.id, VentaMinoristaUpdate(cantidad_vendida=4)
        ).venta

        assert actualizada.total == Decimal("200.00")

    def test_eliminar_venta(self, db_session, minorista, producto):
        venta = _registrar(db_session, minorista, producto, 1)
        service = MinoristaService(db_session)

        service.eliminar_venta(venta.id)

        with pytest.raises(NotFoundError):
            service.obtener_venta(venta.id)

    def test_resumen_del_dia(self, db_session, minorista, producto, producto_b):
        hoy = fecha_local_hoy()
        _registrar(db_session, minorista, producto, 1, 1)
        _registrar(db_session, minorista, producto_b, 3)
        _registrar(db_session, minorista, producto, 5, fecha=hoy - timedelta(days=1))

        resumen = MinoristaService(db_session).resumen_dia(minorista.id)

        assert resumen.cantidad_registros == 2
        assert resumen.unidades_vendidas == 4
        assert resumen.unidades_aumento == 1
        assert resumen.monto_total == Decimal("350.00")

    def test_ticket_del_dia(self, db_session, minorista, producto):
        _registrar(db_session, minorista, producto, 2)

        ticket = MinoristaService(db_session).ticket_ventas(minorista.id)

        assert ticket.titulo == "Liquidación minorista"
        assert ticket.lineas[0].cantidad_vendida == 2
        assert ticket.total == Decimal("200.00")


class TestArqueoMinorista:

    def test_un_arqueo_abierto_por_dia(self, db_session, minorista):
        hoy = fecha_local_hoy()
        service = MinoristaService(db_session)
        service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id))

        with pytest.raises(AlreadyOpenError):
            service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id, fecha=hoy))

        otro_dia = service.abrir_arqueo(
            ArqueoMinoristaAbrirRequest(id_minorista=minorista.id, fecha=hoy - timedelta(days=1))
        )
        assert otro_dia.arqueo.estado == EstadoArqueo.ABIERTO.value

    def test_cerrar_suma_solo_ventas_del_dia(self, db_session, minorista, producto, producto_b):
        hoy = fecha_local_hoy()
        service = MinoristaService(db_session)
        arqueo = service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id)).arqueo
        _registrar(db_session, minorista, producto, 1)
        _registrar(db_session, minorista, producto_b, 2)
        _registrar(db_session, minorista, producto, 4, fecha=hoy - timedelta(days=1))

        cerrado = service.cerrar_arqueo(
            arqueo.id,
            ArqueoMinoristaCerrarRequest(
                saldos_restantes=[SaldoItem(id_producto=producto.id, cantidad_restante=1)],
                efectivo_recibido=Decimal("200")
            )
        ).arqueo

        assert cerrado.estado == EstadoArqueo.CERRADO.value
        assert cerrado.ventas_del_periodo == Decimal("200.00")
        assert cerrado.efectivo_recibido == Decimal("200.00")

    def test_cerrar_dos_veces(self, db_session, minorista):
        service = MinoristaService(db_session)
        arqueo = service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id)).arqueo
        service.cerrar_arqueo(arqueo.id, ArqueoMinoristaCerrarRequest(efectivo_recibido=Decimal("0")))

        with pytest.raises(NotOpenError):
            service.cerrar_arqueo(arqueo.id, ArqueoMinoristaCerrarRequest(efectivo_recibido=Decimal("0")))

    def test_saldos_del_dia_anterior_siembran_preregistros(self, db_session, minorista, producto, producto_b):
        hoy = fecha_local_hoy()
        service = MinoristaService(db_session)
        ayer = service.abrir_arqueo(
            ArqueoMinoristaAbrirRequest(id_minorista=minorista.id, fecha=hoy - timedelta(days=1))
        ).arqueo
        service.cerrar_arqueo(
            ayer.id,
            ArqueoMinoristaCerrarRequest(
                saldos_restantes=[
                    SaldoItem(id_producto=producto.id, cantidad_restante=2),
                    SaldoItem(id_producto=producto_b.id, cantidad_restante=0)
                ],
                efectivo_recibido=Decimal("0")
            )
        )

        arqueo = service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id)).arqueo

        assert len(arqueo.saldos_iniciales) == 2
        preregistros = db_session.query(PreregistroMinorista).filter_by(
            id_minorista=minorista.id, fecha=hoy
        ).all()
        assert [(p.id_producto, p.cantidad) for p in preregistros] == [(producto.id, 2)]

    def test_arqueo_posterior_no_arrastra_hacia_atras(self, db_session, minorista, producto):
        hoy = fecha_local_hoy()
        service = MinoristaService(db_session)
        arqueo = service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id)).arqueo
        service.cerrar_arqueo(
            arqueo.id,
            ArqueoMinoristaCerrarRequest(
                saldos_restantes=[SaldoItem(id_producto=producto.id, cantidad_restante=5)],
                efectivo_recibido=Decimal("0")
            )
        )

        anterior = service.abrir_arqueo(
            ArqueoMinoristaAbrirRequest(id_minorista=minorista.id, fecha=hoy - timedelta(days=3))
        ).arqueo

        assert anterior.saldos_iniciales == []

    def test_dia_cerrado_no_se_reabre(self, db_session, minorista, producto):
        service = MinoristaService(db_session)
        _registrar(db_session, minorista, producto, 1)
        arqueo = service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id)).arqueo
        service.cerrar_arqueo(arqueo.id, ArqueoMinoristaCerrarRequest(efectivo_recibido=Decimal("100")))

        with pytest.raises(ValidationError):
            service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id))

        assert service.listar_arqueos(id_minorista=minorista.id).total == 1

    def test_ventas_de_dia_cerrado_congeladas(self, db_session, minorista, producto):
        ayer = fecha_local_hoy() - timedelta(days=1)
        service = MinoristaService(db_session)
        venta = _registrar(db_session, minorista, producto, 1, fecha=ayer)
        arqueo = service.abrir_arqueo(ArqueoMinoristaAbrirRequest(id_minorista=minorista.id, fecha=ayer)).arqueo
        service.cerrar_arqueo(arqueo.id, ArqueoMinoristaCerrarRequest(efectivo_recibido=Decimal("100")))

        with pytest.raises(ConflictError):
            service.actualizar_venta(venta.id, VentaMinoristaUpdate(cantidad_vendida=5))
        with pytest.raises(ConflictError):
            service.eliminar_venta(venta.id)
        with pytest.raises(ConflictError):
            _registrar(db_session, minorista, producto, 2, fecha=ayer)

        hoy = _registrar(db_session, minorista, producto, 2)
        assert hoy.total == Decimal("200.00")
        assert service.obtener_venta(venta.id).venta.total == Decimal("100.00")


class TestPreregistrosMinorista:

    def test_entrega_sin_preregistro(self, db_session, minorista, producto):
        with pytest.raises(ValidationError) as exc:
            MinoristaService(db_session).aplicar_entrega(EntregaMinoristaRequest(
                id_minorista=minorista.id, items=[EntregaItem(id_producto=producto.id, cantidad=1)]
            ))
        assert exc.value.extra == {"productos": [producto.id]}

    def test_entrega_suma_aumento(self, db_session, minorista, producto):
        service = MinoristaService(db_session)
        service.guardar_preregistro(
            PreregistroMinoristaCreate(id_minorista=minorista.id, id_producto=producto.id, cantidad=4)
        )

        response = service.aplicar_entrega(EntregaMinoristaRequest(
            id_minorista=minorista.id, items=[EntregaItem(id_producto=producto.id, cantidad=3)]
        ))

        assert response.data[0].cantidad == 4
        assert response.data[0].aumento == 3


class TestMinoristaEndpoints:

    def test_minorista_consulta_su_resumen(self, client, minorista_headers, minorista):
        response = client.get(
            "/api/v1/minoristas/ventas/resumen",
            params={"id_minorista": minorista.id},
            headers=minorista_headers
        )

        assert response.status_code == 200
        assert response.json()["cantidad_registros"] == 0

    def test_mayorista_sin_acceso(self, client, mayorista_headers, minorista):
        response = client.get(
            "/api/v1/minoristas/ventas/resumen",
            params={"id_minorista": minorista.id},
            headers=mayorista_headers
        )
        assert response.status_code == 403

    def test_cerrar_arqueo_requiere_admin(self, client, db_session, minorista_headers, minorista):
        arqueo = MinoristaService(db_session).abrir_arqueo(
            ArqueoMinoristaAbrirRequest(id_minorista=minorista.id)
        ).arqueo

        response = client.post(
            f"/api/v1/minoristas/arqueos/{arqueo.id}/cerrar",
            json={"efectivo_recibido": "0"},
            headers=minorista_headers
        )
        assert response.status_code == 403
