"""
Tests para el módulo de Notificaciones de arqueo
"""

import pytest
from datetime import timedelta

from tiendapos.core.exceptions import ConflictError, NotFoundError
from tiendapos.modules.notificaciones.schemas import NotificacionArqueoCreate
from tiendapos.modules.notificaciones.service import NotificacionService
from tiendapos.shared.database.models import NotificacionArqueo, EstadoNotificacion
from tiendapos.shared.utils.fechas import fecha_local_hoy


def _alerta(db, mayorista, dias, **kwargs):
    return NotificacionService(db).registrar(
        NotificacionArqueoCreate(id_mayorista=mayorista.id, dias_sin_arqueo=dias, **kwargs)
    ).notificacion


class TestRegistrarNotificacion:

    def test_mensaje_por_defecto(self, db_session, mayorista):
        notificacion = _alerta(db_session, mayorista, 5)

        assert notificacion.estado == EstadoNotificacion.PENDIENTE.value
        assert notificacion.mensaje == "Distribuidora Norte lleva 5 días sin arqueo"

    def test_actualiza_la_alerta_activa(self, db_session, mayorista):
        primera = _alerta(db_session, mayorista, 3)
        segunda = _alerta(
            db_session, mayorista, 4, fecha_ultimo_arqueo=fecha_local_hoy() - timedelta(days=4)
        )

        assert segunda.id == primera.id
        assert segunda.dias_sin_arqueo == 4
        assert db_session.query(NotificacionArqueo).count() == 1

    def test_nueva_alerta_tras_resolver(self, db_session, mayorista):
        primera = _alerta(db_session, mayorista, 3)
        NotificacionService(db_session).marcar_resuelta(primera.id)

        segunda = _alerta(db_session, mayorista, 1)

        assert segunda.id != primera.id

    def test_solo_mayoristas(self, db_session, minorista):
        with pytest.raises(NotFoundError):
            _alerta(db_session, minorista, 2)


class TestEstadosNotificacion:

    def test_pendiente_vista_resuelta(self, db_session, mayorista):
        service = NotificacionService(db_session)
        notificacion = _alerta(db_session, mayorista, 3)

        assert service.marcar_vista(notificacion.id).notificacion.estado == EstadoNotificacion.VISTA.value
        assert service.marcar_resuelta(notificacion.id).notificacion.estado == EstadoNotificacion.RESUELTA.value

    def test_resolver_sin_ver(self, db_session, mayorista):
        notificacion = _alerta(db_session, mayorista, 3)

        response = NotificacionService(db_session).marcar_resuelta(notificacion.id)

        assert response.notificacion.estado == EstadoNotificacion.RESUELTA.value

    def test_transiciones_invalidas(self, db_session, mayorista):
        service = NotificacionService(db_session)
        notificacion = _alerta(db_session, mayorista, 3)
        service.marcar_vista(notificacion.id)

        with pytest.raises(ConflictError):
            service.marcar_vista(notificacion.id)

        service.marcar_resuelta(notificacion.id)
        with pytest.raises(ConflictError):
            service.marcar_resuelta(notificacion.id)
        with pytest.raises(ConflictError):
            service.marcar_vista(notificacion.id)


class TestConsultasNotificacion:

    def test_listado_ordenado_por_dias(self, db_session, mayorista, otro_mayorista):
        _alerta(db_session, mayorista, 2)
        _alerta(db_session, otro_mayorista, 9)

        listado = NotificacionService(db_session).listar()

        assert [n.dias_sin_arqueo for n in listado.data] == [9, 2]
        assert listado.pendientes == 2

    def test_purgar_resueltas(self, db_session, mayorista, otro_mayorista):
        service = NotificacionService(db_session)
        resuelta = _alerta(db_session, mayorista, 2)
        _alerta(db_session, otro_mayorista, 9)
        service.marcar_resuelta(resuelta.id)

        assert service.purgar_resueltas().eliminadas == 1
        assert service.listar().total == 1

    def test_eliminar(self, db_session, mayorista):
        service = NotificacionService(db_session)
        notificacion = _alerta(db_session, mayorista, 2)

        service.eliminar(notificacion.id)

        with pytest.raises(NotFoundError):
            service.obtener(notificacion.id)


class TestNotificacionEndpoints:

    def test_solo_admin(self, client, mayorista_headers):
        response = client.get("/api/v1/notificaciones-arqueo/", headers=mayorista_headers)
        assert response.status_code == 403

    def test_flujo_por_api(self, client, admin_headers, mayorista):
        response = client.post(
            "/api/v1/notificaciones-arqueo/",
            json={"id_mayorista": mayorista.id, "dias_sin_arqueo": 6},
            headers=admin_headers
        )
        assert response.status_code == 201
        notificacion_id = response.json()["notificacion"]["id"]

        response = client.post(f"/api/v1/notificaciones-arqueo/{notificacion_id}/vista", headers=admin_headers)
        assert response.json()["notificacion"]["estado"] == "vista"

        response = client.post(f"/api/v1/notificaciones-arqueo/{notificacion_id}/vista", headers=admin_headers)
        assert response.status_code == 409
