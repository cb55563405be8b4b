from typing import Optional
from sqlalchemy.orm import Session
import logging

from .repository import NotificacionRepository
from .schemas import (
    NotificacionArqueoCreate, NotificacionArqueoResponse, NotificacionArqueoDetailResponse,
    NotificacionArqueoListResponse, PurgaResponse
)
from tiendapos.core.exceptions import NotFoundError, ConflictError
from tiendapos.shared.database.models import NotificacionArqueo, Usuario, RolUsuario, EstadoNotificacion

logger = logging.getLogger(__name__)

class NotificacionService:
    """
    Alertas de días sin arqueo: pendiente -> vista -> resuelta.

    Las alertas las calcula un proceso externo; aquí solo se registran y se
    avanza su estado.
    """

    def __init__(self, db: Session, repository: Optional[NotificacionRepository] = None):
        self.db = db
        self.repository = repository or NotificacionRepository(db)

    def registrar(self, data: NotificacionArqueoCreate) -> NotificacionArqueoDetailResponse:
        """Crea la alerta o actualiza la que el mayorista aún tenga sin resolver"""
        mayorista = self.db.query(Usuario).filter(Usuario.id == data.id_mayorista).first()
        if not mayorista or mayorista.rol != RolUsuario.MAYORISTA.value:
            raise NotFoundError(f"Mayorista {data.id_mayorista} no encontrado")

        mensaje = data.mensaje or f"{mayorista.nombre} lleva {data.dias_sin_arqueo} días sin arqueo"
        notificacion = self.repository.get_activa(data.id_mayorista)
        if notificacion:
            notificacion.dias_sin_arqueo = data.dias_sin_arqueo
            notificacion.fecha_ultimo_arqueo = data.fecha_ultimo_arqueo
            notificacion.mensaje = mensaje
        else:
            notificacion = self.repository.create({
                "id_mayorista": data.id_mayorista,
                "dias_sin_arqueo": data.dias_sin_arqueo,
                "fecha_ultimo_arqueo": data.fecha_ultimo_arqueo,
                "mensaje": mensaje,
                "estado": EstadoNotificacion.PENDIENTE.value
            })

        self.db.commit()
        self.db.refresh(notificacion)
        logger.info(f"Notificación {notificacion.id}: mayorista {data.id_mayorista}, {data.dias_sin_arqueo} días")

        return NotificacionArqueoDetailResponse(
            success=True,
            message="Notificación registrada",
            notificacion=NotificacionArqueoResponse.model_validate(notificacion)
        )

    def listar(
        self,
        id_mayorista: Optional[int] = None,
        estado: Optional[EstadoNotificacion] = None
    ) -> NotificacionArqueoListResponse:
        notificaciones = self.repository.get_all(id_mayorista, estado.value if estado else None)
        return NotificacionArqueoListResponse(
            success=True,
            message="Notificaciones obtenidas exitosamente",
            data=[NotificacionArqueoResponse.model_validate(n) for n in notificaciones],
            total=len(notificaciones),
            pendientes=sum(1 for n in notificaciones if n.estado == EstadoNotificacion.PENDIENTE.value)
        )

    def obtener(self, notificacion_id: int) -> NotificacionArqueoDetailResponse:
        return NotificacionArqueoDetailResponse(
            success=True,
            message="Notificación encontrada",
            notificacion=NotificacionArqueoResponse.model_validate(self._get(notificacion_id))
        )

    def marcar_vista(self, notificacion_id: int) -> NotificacionArqueoDetailResponse:
        notificacion = self._get(notificacion_id, for_update=True)
        if notificacion.estado != EstadoNotificacion.PENDIENTE.value:
            raise ConflictError(f"La notificación ya está {notificacion.estado}")
        return self._cambiar_estado(notificacion, EstadoNotificacion.VISTA, "Notificación marcada como vista")

    def marcar_resuelta(self, notificacion_id: int) -> NotificacionArqueoDetailResponse:
        notificacion = self._get(notificacion_id, for_update=True)
        if notificacion.estado == EstadoNotificacion.RESUELTA.value:
            raise ConflictError("La notificación ya está resuelta")
        return self._cambiar_estado(notificacion, EstadoNotificacion.RESUELTA, "Notificación resuelta")

    def eliminar(self, notificacion_id: int) -> dict:
        notificacion = self._get(notificacion_id)
        self.repository.delete(notificacion)
        self.db.commit()
        return {"success": True, "message": "Notificación eliminada", "id": notificacion_id}

    def purgar_resueltas(self, id_mayorista: Optional[int] = None) -> PurgaResponse:
        eliminadas = self.repository.delete_resueltas(id_mayorista)
        self.db.commit()
        logger.info(f"Notificaciones resueltas eliminadas: {eliminadas}")
        return PurgaResponse(
            success=True,
            message=f"{eliminadas} notificaciones resueltas eliminadas",
            eliminadas=eliminadas
        )

    def _get(self, notificacion_id: int, for_update: bool = False) -> NotificacionArqueo:
        notificacion = self.repository.get_by_id(notificacion_id, for_update=for_update)
        if not notificacion:
            raise NotFoundError("Notificación no encontrada")
        return notificacion

    def _cambiar_estado(
        self,
        notificacion: NotificacionArqueo,
        estado: EstadoNotificacion,
        message: str
    ) -> NotificacionArqueoDetailResponse:
        notificacion.estado = estado.value
        self.db.commit()
        self.db.refresh(notificacion)
        return NotificacionArqueoDetailResponse(
            success=True,
            message=message,
            notificacion=NotificacionArqueoResponse.model_validate(notificacion)
        )
