"""
Tests para el módulo de Productos e Inventario

- Alta con stock inicial registrado como compra
- Ajuste de stock (movimiento best-effort)
- Movimientos manuales y su anulación
- Consistencia stock_actual vs ledger de movimientos
"""

import pytest
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from tiendapos.core.exceptions import (
    ConflictError, ValidationError, NotFoundError, InsufficientStockError
)
from tiendapos.modules.productos.schemas import (
    ProductoCreate, AjusteStockRequest, MovimientoCreate
)
from tiendapos.modules.productos.service import ProductoService
from tiendapos.shared.database.models import (
    MovimientoInventario, TipoMovimiento, MotivoMovimiento, EstadoProducto
)


class TestCrearProducto:

    def test_stock_inicial_genera_movimiento_de_compra(self, db_session, producto):
        movimientos = db_session.query(MovimientoInventario).filter_by(id_producto=producto.id).all()

        assert producto.stock_actual == 10
        assert len(movimientos) == 1
        assert movimientos[0].tipo_movimiento == TipoMovimiento.ENTRADA.value
        assert movimientos[0].motivo == MotivoMovimiento.COMPRA.value
        assert movimientos[0].cantidad == 10

    def test_sin_stock_inicial_no_genera_movimiento(self, db_session, admin):
        response = ProductoService(db_session).crear_producto(
            ProductoCreate(codigo="P-100", nombre="Servilletas", precio_unitario=Decimal("5")),
            admin.id
        )

        assert response.producto.stock_actual == 0
        assert db_session.query(MovimientoInventario).count() == 0

    def test_codigo_duplicado(self, db_session, admin, producto):
        with pytest.raises(ConflictError):
            ProductoService(db_session).crear_producto(
                ProductoCreate(codigo="P-001", nombre="Otro", precio_unitario=Decimal("1")),
                admin.id
            )

    def test_codigo_en_blanco_rechazado(self):
        with pytest.raises(ValueError):
            ProductoCreate(codigo="   ", nombre="X", precio_unitario=Decimal("1"))


class TestAjusteStock:

    def test_ajuste_registra_movimiento_con_delta(self, db_session, admin, producto):
        service = ProductoService(db_session)
        response = service.ajustar_stock(producto.id, AjusteStockRequest(nueva_cantidad=4), admin.id)

        assert response.producto.stock_actual == 4
        ajuste = db_session.query(MovimientoInventario).filter_by(
            id_producto=producto.id, motivo=MotivoMovimiento.AJUSTE.value
        ).one()
        assert ajuste.tipo_movimiento == TipoMovimiento.SALIDA.value
        assert ajuste.cantidad == 6
        assert service.verificar_consistencia(producto.id).consistente

    def test_ajuste_sin_cambio_no_registra_movimiento(self, db_session, admin, producto):
        ProductoService(db_session).ajustar_stock(producto.id, AjusteStockRequest(nueva_cantidad=10), admin.id)

        assert db_session.query(MovimientoInventario).filter_by(
            motivo=MotivoMovimiento.AJUSTE.value
        ).count() == 0

    def test_fallo_del_movimiento_no_revierte_el_stock(self, db_session, admin, producto, monkeypatch):
        service = ProductoService(db_session)

        def falla(*args, **kwargs):
            raise SQLAlchemyError("insert rechazado")

        monkeypatch.setattr(service.inventory, "agregar_movimiento", falla)
        response = service.ajustar_stock(producto.id, AjusteStockRequest(nueva_cantidad=25), admin.id)

        assert response.producto.stock_actual == 25
        consistencia = service.verificar_consistencia(producto.id)
        assert not consistencia.consistente
        assert consistencia.stock_movimientos == 10
        assert consistencia.diferencia == 15

    def test_producto_inexistente(self, db_session, admin):
        with pytest.raises(NotFoundError):
            ProductoService(db_session).ajustar_stock(999, AjusteStockRequest(nueva_cantidad=1), admin.id)


class TestMovimientos:

    def test_salida_manual_descuenta_stock(self, db_session, admin, producto):
        service = ProductoService(db_session)
        movimiento = service.registrar_movimiento(
            MovimientoCreate(
                id_producto=producto.id,
                tipo_movimiento=TipoMovimiento.SALIDA,
                cantidad=3,
                motivo=MotivoMovimiento.AJUSTE,
                observacion="Rotura"
            ),
            admin.id
        )

        db_session.refresh(producto)
        assert movimiento.cantidad == 3
        assert producto.stock_actual == 7
        assert service.verificar_consistencia(producto.id).consistente

    def test_salida_mayor_al_stock(self, db_session, admin, producto):
        with pytest.raises(InsufficientStockError) as exc:
            ProductoService(db_session).registrar_movimiento(
                MovimientoCreate(
                    id_producto=producto.id,
                    tipo_movimiento=TipoMovimiento.SALIDA,
                    cantidad=11,
                    motivo=MotivoMovimiento.AJUSTE
                ),
                admin.id
            )

        assert exc.value.extra == {"producto": "Gaseosa 2L", "disponible": 10, "solicitado": 11}
        db_session.refresh(producto)
        assert producto.stock_actual == 10

    def test_motivo_venta_no_permitido(self):
        with pytest.raises(ValueError):
            MovimientoCreate(
                id_producto=1,
                tipo_movimiento=TipoMovimiento.SALIDA,
                cantidad=1,
                motivo=MotivoMovimiento.VENTA
            )

    def test_producto_inactivo(self, db_session, admin, producto):
        service = ProductoService(db_session)
        service.cambiar_estado(producto.id)

        with pytest.raises(ValidationError):
            service.registrar_movimiento(
                MovimientoCreate(
                    id_producto=producto.id,
                    tipo_movimiento=TipoMovimiento.ENTRADA,
                    cantidad=1,
                    motivo=MotivoMovimiento.COMPRA
                ),
                admin.id
            )

    def test_anular_movimiento_revierte_stock(self, db_session, admin, producto):
        service = ProductoService(db_session)
        movimiento = service.registrar_movimiento(
            MovimientoCreate(
                id_producto=producto.id,
                tipo_movimiento=TipoMovimiento.ENTRADA,
                cantidad=5,
                motivo=MotivoMovimiento.COMPRA
            ),
            admin.id
        )

        anulado = service.anular_movimiento(movimiento.id, admin.id, "Factura duplicada")

        db_session.refresh(producto)
        assert anulado.anulado is True
        assert anulado.id_usuario_anulacion == admin.id
        assert anulado.motivo_anulacion == "Factura duplicada"
        assert anulado.fecha_anulacion is not None
        assert producto.stock_actual == 10
        assert service.verificar_consistencia(producto.id).consistente

    def test_anular_dos_veces(self, db_session, admin, producto):
        service = ProductoService(db_session)
        movimiento = db_session.query(MovimientoInventario).filter_by(id_producto=producto.id).first()
        service.anular_movimiento(movimiento.id, admin.id, "Error de carga")

        with pytest.raises(ConflictError):
            service.anular_movimiento(movimiento.id, admin.id, "Otra vez")

    def test_anular_entrada_ya_consumida(self, db_session, admin, producto):
        service = ProductoService(db_session)
        service.ajustar_stock(producto.id, AjusteStockRequest(nueva_cantidad=2), admin.id)
        compra = db_session.query(MovimientoInventario).filter_by(
            id_producto=producto.id, motivo=MotivoMovimiento.COMPRA.value
        ).one()

        with pytest.raises(InsufficientStockError):
            service.anular_movimiento(compra.id, admin.id, "No debería poder")


class TestConsultas:

    def test_stock_bajo(self, db_session, producto, producto_b):
        producto.stock_actual = 3
        db_session.commit()

        response = ProductoService(db_session).productos_stock_bajo()

        assert [p.id for p in response.data] == [producto.id]

    def test_stock_bajo_excluye_inactivos(self, db_session, producto):
        producto.stock_actual = 0
        producto.estado = EstadoProducto.INACTIVO.value
        db_session.commit()

        assert ProductoService(db_session).productos_stock_bajo().total == 0

    def test_busqueda_por_nombre_o_codigo(self, db_session, producto, producto_b):
        service = ProductoService(db_session)

        assert [p.codigo for p in service.listar_productos(busqueda="galle").data] == ["P-002"]
        assert [p.codigo for p in service.listar_productos(busqueda="P-001").data] == ["P-001"]


class TestProductoEndpoints:

    def test_crear_producto_requiere_admin(self, client, vendedor_headers):
        response = client.post(
            "/api/v1/productos/",
            json={"codigo": "X-1", "nombre": "X", "precio_unitario": "1.00"},
            headers=vendedor_headers
        )
        assert response.status_code == 403

    def test_crear_y_consultar(self, client, admin_headers):
        response = client.post(
            "/api/v1/productos/",
            json={"codigo": "X-1", "nombre": "Agua", "precio_unitario": "3.50", "stock_inicial": 4},
            headers=admin_headers
        )
        assert response.status_code == 201
        producto_id = response.json()["producto"]["id"]

        response = client.get(f"/api/v1/productos/{producto_id}/consistencia", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["consistente"] is True

    def test_error_de_stock_estructurado(self, client, admin_headers, producto):
        response = client.post(
            "/api/v1/productos/movimientos",
            json={
                "id_producto": producto.id,
                "tipo_movimiento": "salida",
                "cantidad": 50,
                "motivo": "ajuste"
            },
            headers=admin_headers
        )

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "insufficient_stock"
        assert body["details"]["disponible"] == 10

    def test_sin_token(self, client):
        response = client.get("/api/v1/productos/")
        assert response.status_code in (401, 403)
