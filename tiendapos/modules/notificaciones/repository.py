from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional, Dict, Any

from tiendapos.shared.database.models import NotificacionArqueo, EstadoNotificacion

class NotificacionRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, data: Dict[str, Any]) -> NotificacionArqueo:
        notificacion = NotificacionArqueo(**data)
        self.db.add(notificacion)
        self.db.flush()
        return notificacion

    def get_by_id(self, notificacion_id: int, for_update: bool = False) -> Optional[NotificacionArqueo]:
        query = self.db.query(NotificacionArqueo).filter(NotificacionArqueo.id == notificacion_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_activa(self, id_mayorista: int) -> Optional[NotificacionArqueo]:
        """Notificación aún no resuelta de un mayorista (la más reciente)"""
        return self.db.query(NotificacionArqueo).filter(
            NotificacionArqueo.id_mayorista == id_mayorista,
            NotificacionArqueo.estado != EstadoNotificacion.RESUELTA.value
        ).order_by(desc(NotificacionArqueo.id)).first()

    def get_all(self, id_mayorista: Optional[int] = None, estado: Optional[str] = None) -> List[NotificacionArqueo]:
        query = self.db.query(NotificacionArqueo)
        if id_mayorista:
            query = query.filter(NotificacionArqueo.id_mayorista == id_mayorista)
        if estado:
            query = query.filter(NotificacionArqueo.estado == estado)
        return query.order_by(
            desc(NotificacionArqueo.dias_sin_arqueo),
            desc(NotificacionArqueo.created_at),
            desc(NotificacionArqueo.id)
        ).all()

    def delete(self, notificacion: NotificacionArqueo) -> None:
        self.db.delete(notificacion)
        self.db.flush()

    def delete_resueltas(self, id_mayorista: Optional[int] = None) -> int:
        query = self.db.query(NotificacionArqueo).filter(
            NotificacionArqueo.estado == EstadoNotificacion.RESUELTA.value
        )
        if id_mayorista:
            query = query.filter(NotificacionArqueo.id_mayorista == id_mayorista)
        eliminadas = query.delete(synchronize_session=False)
        self.db.flush()
        return eliminadas
