"""
Tests para el módulo de Pedidos

- Alta con líneas, solo para distribuidores
- Líneas editables mientras el pedido está pendiente
- Entrega contra preregistros (todo o nada) con asientos de aumento
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from tiendapos.core.exceptions import ConflictError, NotFoundError, ValidationError
from tiendapos.modules.mayoristas.schemas import (
    PreregistroMayoristaCreate, VentaMayoristaCreate,
    ArqueoMayoristaAbrirRequest, ArqueoMayoristaCerrarRequest
)
from tiendapos.modules.mayoristas.service import MayoristaService
from tiendapos.modules.minoristas.schemas import PreregistroMinoristaCreate
from tiendapos.modules.minoristas.service import MinoristaService
from tiendapos.modules.pedidos.schemas import PedidoCreate, DetallePedidoItem, PedidoEstadoRequest
from tiendapos.modules.pedidos.service import PedidoService
from tiendapos.shared.database.models import (
    Pedido, PreregistroMayorista, PreregistroMinorista, VentaMayorista, VentaMinorista,
    EstadoPedido
)
from tiendapos.shared.utils.fechas import fecha_local_hoy


def _pedido(db, usuario, *lineas, **kwargs):
    return PedidoService(db).crear(PedidoCreate(
        id_usuario=usuario.id,
        detalles=[DetallePedidoItem(id_producto=p.id, cantidad=c) for p, c in lineas],
        **kwargs
    )).pedido


def _preregistro_mayorista(db, mayorista, producto, cantidad, fecha=None):
    MayoristaService(db).guardar_preregistro(PreregistroMayoristaCreate(
        id_mayorista=mayorista.id, id_producto=producto.id, cantidad=cantidad, fecha=fecha
    ))


class TestCrearPedido:

    def test_crear_con_lineas(self, db_session, mayorista, producto, producto_b):
        pedido = _pedido(db_session, mayorista, (producto, 4), (producto_b, 2), observaciones="Urgente")

        assert pedido.estado == EstadoPedido.PENDIENTE.value
        assert pedido.tipo_usuario == "mayorista"
        assert pedido.fecha_pedido == fecha_local_hoy()
        assert [(d.id_producto, d.cantidad) for d in pedido.detalles] == [(producto.id, 4), (producto_b.id, 2)]

    def test_tipo_segun_rol(self, db_session, minorista, producto):
        assert _pedido(db_session, minorista, (producto, 1)).tipo_usuario == "minorista"

    def test_solo_distribuidores(self, db_session, vendedor, producto):
        with pytest.raises(NotFoundError):
            _pedido(db_session, vendedor, (producto, 1))

    def test_producto_inexistente(self, db_session, mayorista, producto):
        with pytest.raises(NotFoundError):
            PedidoService(db_session).crear(PedidoCreate(
                id_usuario=mayorista.id,
                detalles=[DetallePedidoItem(id_producto=999, cantidad=1)]
            ))
        assert db_session.query(Pedido).count() == 0

    def test_producto_repetido(self, mayorista, producto):
        with pytest.raises(ValueError):
            PedidoCreate(
                id_usuario=mayorista.id,
                detalles=[
                    DetallePedidoItem(id_producto=producto.id, cantidad=1),
                    DetallePedidoItem(id_producto=producto.id, cantidad=2)
                ]
            )

    def test_listar_por_usuario_y_estado(self, db_session, mayorista, minorista, producto):
        service = PedidoService(db_session)
        primero = _pedido(db_session, mayorista, (producto, 1))
        _pedido(db_session, mayorista, (producto, 2))
        _pedido(db_session, minorista, (producto, 3))
        service.cambiar_estado(primero.id, PedidoEstadoRequest(estado=EstadoPedido.CANCELADO))

        assert service.listar(mayorista.id).total == 2
        assert service.listar(estado=EstadoPedido.PENDIENTE).total == 2
        assert [p.id for p in service.listar(mayorista.id, EstadoPedido.CANCELADO).data] == [primero.id]


class TestDetallesPedido:

    def test_agregar_reemplaza_cantidad_existente(self, db_session, mayorista, producto, producto_b):
        service = PedidoService(db_session)
        pedido = _pedido(db_session, mayorista, (producto, 4))

        service.agregar_detalle(pedido.id, DetallePedidoItem(id_producto=producto.id, cantidad=6))
        service.agregar_detalle(pedido.id, DetallePedidoItem(id_producto=producto_b.id, cantidad=1))

        detalles = service.obtener(pedido.id).pedido.detalles
        assert [(d.id_producto, d.cantidad) for d in detalles] == [(producto.id, 6), (producto_b.id, 1)]

    def test_actualizar_y_eliminar(self, db_session, mayorista, producto, producto_b):
        service = PedidoService(db_session)
        pedido = _pedido(db_session, mayorista, (producto, 4), (producto_b, 2))
        linea_a, linea_b = pedido.detalles

        assert service.actualizar_detalle(pedido.id, linea_a.id, 9).detalle.cantidad == 9
        service.eliminar_detalle(pedido.id, linea_b.id)

        detalles = service.obtener(pedido.id).pedido.detalles
        assert [(d.id_producto, d.cantidad) for d in detalles] == [(producto.id, 9)]

    def test_no_se_elimina_la_ultima_linea(self, db_session, mayorista, producto):
        pedido = _pedido(db_session, mayorista, (producto, 4))

        with pytest.raises(ValidationError):
            PedidoService(db_session).eliminar_detalle(pedido.id, pedido.detalles[0].id)

    def test_linea_de_otro_pedido(self, db_session, mayorista, producto):
        uno = _pedido(db_session, mayorista, (producto, 1))
        otro = _pedido(db_session, mayorista, (producto, 2))

        with pytest.raises(NotFoundError):
            PedidoService(db_session).actualizar_detalle(uno.id, otro.detalles[0].id, 5)

    def test_pedido_enviado_no_se_edita(self, db_session, mayorista, producto, producto_b):
        service = PedidoService(db_session)
        pedido = _pedido(db_session, mayorista, (producto, 4))
        service.cambiar_estado(pedido.id, PedidoEstadoRequest(estado=EstadoPedido.ENVIADO))

        with pytest.raises(ConflictError):
            service.agregar_detalle(pedido.id, DetallePedidoItem(id_producto=producto_b.id, cantidad=1))


class TestEstadosPedido:

    def test_cancelado_es_final(self, db_session, mayorista, producto):
        service = PedidoService(db_session)
        pedido = _pedido(db_session, mayorista, (producto, 1))
        service.cambiar_estado(pedido.id, PedidoEstadoRequest(estado=EstadoPedido.CANCELADO))

        with pytest.raises(ConflictError):
            service.cambiar_estado(pedido.id, PedidoEstadoRequest(estado=EstadoPedido.ENVIADO))
        with pytest.raises(ConflictError):
            service.entregar(pedido.id)

    def test_entregado_solo_por_entrega(self, db_session, mayorista, producto):
        pedido = _pedido(db_session, mayorista, (producto, 1))

        with pytest.raises(ValidationError):
            PedidoService(db_session).cambiar_estado(pedido.id, PedidoEstadoRequest(estado=EstadoPedido.ENTREGADO))

    def test_eliminar_pendiente(self, db_session, mayorista, producto):
        pedido = _pedido(db_session, mayorista, (producto, 1))

        PedidoService(db_session).eliminar(pedido.id)

        assert db_session.query(Pedido).count() == 0


class TestEntregaPedido:

    def test_entrega_mayorista(self, db_session, mayorista, producto, producto_b):
        _preregistro_mayorista(db_session, mayorista, producto, 10)
        _preregistro_mayorista(db_session, mayorista, producto_b, 5)
        pedido = _pedido(db_session, mayorista, (producto, 4), (producto_b, 2))

        response = PedidoService(db_session).entregar(pedido.id)

        assert response.pedido.estado == EstadoPedido.ENTREGADO.value
        assert response.pedido.fecha_entrega == fecha_local_hoy()
        # 4 x 80 (precio mayor) + 2 x 50 (sin precio mayor)
        assert response.total_aumento == Decimal("420.00")

        aumentos = {p.id_producto: p.aumento for p in db_session.query(PreregistroMayorista).all()}
        assert aumentos == {producto.id: 4, producto_b.id: 2}

        ventas = db_session.query(VentaMayorista).order_by(VentaMayorista.id).all()
        assert [v.id for v in ventas] == response.ventas_registradas
        assert all(v.id_pedido == pedido.id and v.cantidad_vendida == 0 for v in ventas)
        assert [v.cantidad_aumento for v in ventas] == [4, 2]

    def test_entrega_minorista(self, db_session, minorista, producto):
        MinoristaService(db_session).guardar_preregistro(PreregistroMinoristaCreate(
            id_minorista=minorista.id, id_producto=producto.id, cantidad=3
        ))
        pedido = _pedido(db_session, minorista, (producto, 5))

        response = PedidoService(db_session).entregar(pedido.id)

        assert response.total_aumento == Decimal("500.00")
        assert db_session.query(PreregistroMinorista).one().aumento == 5
        venta = db_session.query(VentaMinorista).one()
        assert venta.id_pedido == pedido.id
        assert venta.cantidad_aumento == 5

    def test_sin_preregistro_no_aplica_nada(self, db_session, mayorista, producto, producto_b):
        _preregistro_mayorista(db_session, mayorista, producto, 10)
        pedido = _pedido(db_session, mayorista, (producto, 4), (producto_b, 2))

        with pytest.raises(ValidationError) as exc:
            PedidoService(db_session).entregar(pedido.id)

        assert exc.value.extra == {"productos": [producto_b.id]}
        assert db_session.query(PreregistroMayorista).one().aumento == 0
        assert db_session.query(VentaMayorista).count() == 0
        assert db_session.get(Pedido, pedido.id).estado == EstadoPedido.PENDIENTE.value

    def test_preregistro_de_otra_fecha(self, db_session, mayorista, producto):
        ayer = fecha_local_hoy() - timedelta(days=1)
        _preregistro_mayorista(db_session, mayorista, producto, 10, fecha=ayer)
        pedido = _pedido(db_session, mayorista, (producto, 4))
        service = PedidoService(db_session)

        with pytest.raises(ValidationError):
            service.entregar(pedido.id)

        response = service.entregar(pedido.id, ayer)
        assert response.pedido.fecha_entrega == ayer

    def test_periodo_cerrado_no_acepta_entregas(self, db_session, mayorista, producto):
        hoy = fecha_local_hoy()
        mayoristas = MayoristaService(db_session)
        _preregistro_mayorista(db_session, mayorista, producto, 10)
        arqueo = mayoristas.abrir_arqueo(
            ArqueoMayoristaAbrirRequest(id_mayorista=mayorista.id, fecha_inicio=hoy - timedelta(days=3))
        ).arqueo
        mayoristas.cerrar_arqueo(
            arqueo.id, ArqueoMayoristaCerrarRequest(efectivo_recibido=Decimal("0"), fecha_fin=hoy)
        )
        pedido = _pedido(db_session, mayorista, (producto, 4))

        with pytest.raises(ConflictError):
            PedidoService(db_session).entregar(pedido.id)

        assert db_session.query(VentaMayorista).count() == 0
        assert db_session.get(Pedido, pedido.id).estado == EstadoPedido.PENDIENTE.value

    def test_entregado_no_se_elimina_ni_reentrega(self, db_session, mayorista, producto):
        _preregistro_mayorista(db_session, mayorista, producto, 10)
        pedido = _pedido(db_session, mayorista, (producto, 4))
        service = PedidoService(db_session)
        service.entregar(pedido.id)

        with pytest.raises(ConflictError):
            service.entregar(pedido.id)
        with pytest.raises(ConflictError):
            service.eliminar(pedido.id)


class TestVentasConPedido:

    def test_venta_referencia_pedido_propio(self, db_session, mayorista, otro_mayorista, producto):
        pedido = _pedido(db_session, mayorista, (producto, 1))
        service = MayoristaService(db_session)

        venta = service.registrar_venta(VentaMayoristaCreate(
            id_mayorista=mayorista.id, id_producto=producto.id, cantidad_vendida=1, id_pedido=pedido.id
        )).venta
        assert venta.id_pedido == pedido.id

        with pytest.raises(NotFoundError):
            service.registrar_venta(VentaMayoristaCreate(
                id_mayorista=otro_mayorista.id, id_producto=producto.id, cantidad_vendida=1, id_pedido=pedido.id
            ))

    def test_pedido_con_ventas_no_se_elimina(self, db_session, mayorista, producto):
        pedido = _pedido(db_session, mayorista, (producto, 1))
        MayoristaService(db_session).registrar_venta(VentaMayoristaCreate(
            id_mayorista=mayorista.id, id_producto=producto.id, cantidad_vendida=1, id_pedido=pedido.id
        ))

        with pytest.raises(ConflictError):
            PedidoService(db_session).eliminar(pedido.id)


class TestPedidoEndpoints:

    def test_distribuidor_solo_pide_a_su_nombre(self, client, mayorista_headers, minorista, producto):
        response = client.post(
            "/api/v1/pedidos/",
            json={"id_usuario": minorista.id, "detalles": [{"id_producto": producto.id, "cantidad": 1}]},
            headers=mayorista_headers
        )
        assert response.status_code == 403

    def test_crear_listar_y_entregar(self, client, mayorista, mayorista_headers, admin_headers, producto):
        response = client.post(
            "/api/v1/pedidos/",
            json={"id_usuario": mayorista.id, "detalles": [{"id_producto": producto.id, "cantidad": 2}]},
            headers=mayorista_headers
        )
        assert response.status_code == 201
        pedido_id = response.json()["pedido"]["id"]

        response = client.get("/api/v1/pedidos/", headers=mayorista_headers)
        assert response.json()["total"] == 1

        response = client.post(f"/api/v1/pedidos/{pedido_id}/entregar", json={}, headers=mayorista_headers)
        assert response.status_code == 403

        response = client.post(f"/api/v1/pedidos/{pedido_id}/entregar", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["details"] == {"productos": [producto.id]}

    def test_vendedor_sin_acceso(self, client, vendedor_headers):
        response = client.get("/api/v1/pedidos/", headers=vendedor_headers)
        assert response.status_code == 403
