"""
Fixtures compartidas.

Cada test corre contra una base SQLite en memoria nueva (StaticPool para que
la sesión del test y la de los endpoints vean la misma conexión).
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tiendapos.config.database import Base, get_db
from tiendapos.core.auth.service import AuthService
from tiendapos.main import app
from tiendapos.modules.productos.schemas import ProductoCreate
from tiendapos.modules.productos.service import ProductoService
from tiendapos.shared.database.models import Usuario, Producto, Cliente, RolUsuario


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


def _crear_usuario(db, email: str, nombre: str, rol: RolUsuario) -> Usuario:
    usuario = Usuario(
        email=email,
        password_hash="sin-login",
        nombre=nombre,
        rol=rol.value,
        is_active=True
    )
    db.add(usuario)
    db.commit()
    db.refresh(usuario)
    return usuario


# ===== USUARIOS =====

@pytest.fixture
def admin(db_session):
    return _crear_usuario(db_session, "admin@tiendapos.test", "Administración", RolUsuario.ADMINISTRADOR)


@pytest.fixture
def vendedor(db_session):
    return _crear_usuario(db_session, "vendedor@tiendapos.test", "Caja 1", RolUsuario.VENDEDOR)


@pytest.fixture
def mayorista(db_session):
    return _crear_usuario(db_session, "mayorista@tiendapos.test", "Distribuidora Norte", RolUsuario.MAYORISTA)


@pytest.fixture
def otro_mayorista(db_session):
    return _crear_usuario(db_session, "mayorista2@tiendapos.test", "Distribuidora Sur", RolUsuario.MAYORISTA)


@pytest.fixture
def minorista(db_session):
    return _crear_usuario(db_session, "minorista@tiendapos.test", "Kiosco Central", RolUsuario.MINORISTA)


# ===== CATÁLOGO =====

def _crear_producto(db, admin, codigo, nombre, precio, stock, precio_mayor=None, stock_minimo=0) -> Producto:
    response = ProductoService(db).crear_producto(
        ProductoCreate(
            codigo=codigo,
            nombre=nombre,
            precio_unitario=Decimal(precio),
            precio_mayor=Decimal(precio_mayor) if precio_mayor is not None else None,
            stock_inicial=stock,
            stock_minimo=stock_minimo
        ),
        admin.id
    )
    return db.get(Producto, response.producto.id)


@pytest.fixture
def producto(db_session, admin):
    """Stock 10, precio 100"""
    return _crear_producto(db_session, admin, "P-001", "Gaseosa 2L", "100.00", 10, precio_mayor="80.00", stock_minimo=3)


@pytest.fixture
def producto_b(db_session, admin):
    """Stock 5, precio 50"""
    return _crear_producto(db_session, admin, "P-002", "Galletas", "50.00", 5)


@pytest.fixture
def cliente(db_session):
    cliente = Cliente(nombre="Juan Pérez", ci_nit="1234567", telefono="70000000")
    db_session.add(cliente)
    db_session.commit()
    db_session.refresh(cliente)
    return cliente


# ===== HTTP =====

@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(usuario: Usuario) -> dict:
    token = AuthService.issue_token(usuario)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def vendedor_headers(vendedor):
    return auth_headers(vendedor)


@pytest.fixture
def mayorista_headers(mayorista):
    return auth_headers(mayorista)


@pytest.fixture
def minorista_headers(minorista):
    return auth_headers(minorista)
