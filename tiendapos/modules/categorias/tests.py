"""
Tests para el módulo de Categorías
"""

import pytest
from decimal import Decimal

from tiendapos.core.exceptions import ConflictError, NotFoundError, ValidationError
from tiendapos.modules.categorias.schemas import CategoriaCreate, CategoriaUpdate
from tiendapos.modules.categorias.service import CategoriaService
from tiendapos.modules.productos.schemas import ProductoCreate
from tiendapos.modules.productos.service import ProductoService
from tiendapos.shared.database.models import Categoria, EstadoProducto


def _categoria(db, nombre, **kwargs):
    return CategoriaService(db).crear(CategoriaCreate(nombre=nombre, **kwargs)).categoria


class TestCrearCategoria:

    def test_crear(self, db_session):
        categoria = _categoria(db_session, "  Bebidas ", descripcion="Gaseosas y jugos")

        assert categoria.nombre == "Bebidas"
        assert categoria.estado == EstadoProducto.ACTIVO.value

    def test_nombre_duplicado(self, db_session):
        _categoria(db_session, "Bebidas")

        with pytest.raises(ConflictError):
            _categoria(db_session, "bebidas")
        assert db_session.query(Categoria).count() == 1

    def test_nombre_vacio(self):
        with pytest.raises(ValueError):
            CategoriaCreate(nombre="   ")


class TestEditarCategoria:

    def test_actualizar(self, db_session):
        categoria = _categoria(db_session, "Bebidas")

        actualizada = CategoriaService(db_session).actualizar(
            categoria.id, CategoriaUpdate(nombre="Bebidas frías")
        ).categoria

        assert actualizada.nombre == "Bebidas frías"
        assert actualizada.descripcion is None

    def test_actualizar_a_nombre_existente(self, db_session):
        _categoria(db_session, "Bebidas")
        snacks = _categoria(db_session, "Snacks")

        with pytest.raises(ConflictError):
            CategoriaService(db_session).actualizar(snacks.id, CategoriaUpdate(nombre="BEBIDAS"))
        assert db_session.get(Categoria, snacks.id).nombre == "Snacks"

    def test_conservar_su_propio_nombre(self, db_session):
        categoria = _categoria(db_session, "Bebidas")

        actualizada = CategoriaService(db_session).actualizar(
            categoria.id, CategoriaUpdate(nombre="Bebidas", descripcion="Con y sin gas")
        ).categoria

        assert actualizada.descripcion == "Con y sin gas"

    def test_eliminar_es_baja_logica(self, db_session):
        service = CategoriaService(db_session)
        categoria = _categoria(db_session, "Bebidas")

        service.eliminar(categoria.id)

        assert db_session.get(Categoria, categoria.id).estado == EstadoProducto.INACTIVO.value
        assert service.listar(incluir_inactivas=False).total == 0
        assert service.listar().total == 1

    def test_alternar_estado(self, db_session):
        service = CategoriaService(db_session)
        categoria = _categoria(db_session, "Bebidas")

        assert service.cambiar_estado(categoria.id).categoria.estado == EstadoProducto.INACTIVO.value
        assert service.cambiar_estado(categoria.id).categoria.estado == EstadoProducto.ACTIVO.value

    def test_inexistente(self, db_session):
        with pytest.raises(NotFoundError):
            CategoriaService(db_session).cambiar_estado(999)


class TestProductosPorCategoria:

    def test_producto_con_categoria(self, db_session, admin, producto):
        bebidas = _categoria(db_session, "Bebidas")
        service = ProductoService(db_session)

        creado = service.crear_producto(
            ProductoCreate(
                codigo="P-200", nombre="Agua 1L", precio_unitario=Decimal("4"), id_categoria=bebidas.id
            ),
            admin.id
        ).producto

        assert creado.id_categoria == bebidas.id
        assert [p.codigo for p in service.listar_productos(id_categoria=bebidas.id).data] == ["P-200"]

    def test_categoria_inactiva_rechazada(self, db_session, admin):
        bebidas = _categoria(db_session, "Bebidas")
        CategoriaService(db_session).eliminar(bebidas.id)

        with pytest.raises(ValidationError):
            ProductoService(db_session).crear_producto(
                ProductoCreate(
                    codigo="P-200", nombre="Agua 1L", precio_unitario=Decimal("4"), id_categoria=bebidas.id
                ),
                admin.id
            )

    def test_categoria_inexistente(self, db_session, admin):
        with pytest.raises(NotFoundError):
            ProductoService(db_session).crear_producto(
                ProductoCreate(codigo="P-200", nombre="Agua 1L", precio_unitario=Decimal("4"), id_categoria=99),
                admin.id
            )


class TestCategoriaEndpoints:

    def test_crear_requiere_admin(self, client, vendedor_headers):
        response = client.post("/api/v1/categorias/", json={"nombre": "Bebidas"}, headers=vendedor_headers)
        assert response.status_code == 403

    def test_duplicado_es_409(self, client, admin_headers, vendedor_headers):
        response = client.post("/api/v1/categorias/", json={"nombre": "Bebidas"}, headers=admin_headers)
        assert response.status_code == 201

        response = client.post("/api/v1/categorias/", json={"nombre": "Bebidas"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error_code"] == "conflict"

        response = client.get("/api/v1/categorias/", headers=vendedor_headers)
        assert response.json()["total"] == 1
