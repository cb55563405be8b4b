"""
Tests de autenticación y control de acceso
"""

import pytest
from jose import jwt

from tiendapos.config.settings import settings
from tiendapos.core.auth.dependencies import can_access_distribuidor
from tiendapos.core.auth.service import AuthService
from tiendapos.shared.database.models import Usuario, RolUsuario


@pytest.fixture
def usuario_con_clave(db_session):
    usuario = Usuario(
        email="caja@tiendapos.test",
        password_hash=AuthService.hash_password("secreto123"),
        nombre="Caja 2",
        rol=RolUsuario.VENDEDOR.value,
        is_active=True
    )
    db_session.add(usuario)
    db_session.commit()
    db_session.refresh(usuario)
    return usuario


class TestLogin:

    def test_login_json(self, client, usuario_con_clave):
        response = client.post(
            "/api/v1/auth/login-json",
            json={"email": "caja@tiendapos.test", "password": "secreto123"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["rol"] == "vendedor"

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.json()["email"] == "caja@tiendapos.test"

    def test_login_formulario(self, client, usuario_con_clave):
        response = client.post(
            "/api/v1/auth/login",
            data={"username": "caja@tiendapos.test", "password": "secreto123"}
        )
        assert response.status_code == 200

    def test_clave_incorrecta(self, client, usuario_con_clave):
        response = client.post(
            "/api/v1/auth/login-json",
            json={"email": "caja@tiendapos.test", "password": "otra-clave"}
        )
        assert response.status_code == 401

    def test_usuario_inactivo(self, client, db_session, usuario_con_clave):
        usuario_con_clave.is_active = False
        db_session.commit()

        response = client.post(
            "/api/v1/auth/login-json",
            json={"email": "caja@tiendapos.test", "password": "secreto123"}
        )
        assert response.status_code == 403


class TestAutenticar:

    def test_credenciales_validas(self, db_session, usuario_con_clave):
        assert AuthService.authenticate(db_session, "caja@tiendapos.test", "secreto123").id == usuario_con_clave.id

    def test_email_desconocido(self, db_session, usuario_con_clave):
        assert AuthService.authenticate(db_session, "nadie@tiendapos.test", "secreto123") is None

    def test_hash_ilegible(self, db_session, usuario_con_clave):
        usuario_con_clave.password_hash = "texto-plano"
        db_session.commit()

        assert AuthService.authenticate(db_session, "caja@tiendapos.test", "texto-plano") is None


class TestTokens:

    def test_token_lleva_usuario_y_rol(self, mayorista):
        payload = AuthService.decode_token(AuthService.issue_token(mayorista))

        assert payload["user_id"] == mayorista.id
        assert payload["rol"] == "mayorista"
        assert "exp" in payload

    def test_token_de_otra_clave(self, mayorista):
        token = jwt.encode({"user_id": mayorista.id}, "otra-clave", algorithm=settings.algorithm)
        assert AuthService.decode_token(token) is None

    def test_token_invalido(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer no-es-un-jwt"})
        assert response.status_code == 401


class TestAccesoDistribuidor:

    def test_admin_ve_a_todos(self, admin, mayorista):
        assert can_access_distribuidor(admin, mayorista.id)

    def test_distribuidor_solo_a_si_mismo(self, mayorista, otro_mayorista):
        assert can_access_distribuidor(mayorista, mayorista.id)
        assert not can_access_distribuidor(mayorista, otro_mayorista.id)
