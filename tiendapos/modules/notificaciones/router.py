# tiendapos/modules/notificaciones/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import require_roles, ADMIN
from tiendapos.shared.database.models import EstadoNotificacion
from .service import NotificacionService
from .schemas import (
    NotificacionArqueoCreate, NotificacionArqueoDetailResponse,
    NotificacionArqueoListResponse, PurgaResponse
)

router = APIRouter()

@router.post("/", response_model=NotificacionArqueoDetailResponse, status_code=201)
async def registrar_notificacion(
    data: NotificacionArqueoCreate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Registrar alerta de días sin arqueo

    Si el mayorista ya tiene una alerta sin resolver, se actualiza esa.
    """
    return NotificacionService(db).registrar(data)

@router.get("/", response_model=NotificacionArqueoListResponse)
async def listar_notificaciones(
    id_mayorista: Optional[int] = Query(None),
    estado: Optional[EstadoNotificacion] = Query(None),
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Ordenadas por días sin arqueo (desc)"""
    return NotificacionService(db).listar(id_mayorista, estado)

@router.delete("/resueltas", response_model=PurgaResponse)
async def purgar_resueltas(
    id_mayorista: Optional[int] = Query(None),
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return NotificacionService(db).purgar_resueltas(id_mayorista)

@router.get("/{notificacion_id}", response_model=NotificacionArqueoDetailResponse)
async def obtener_notificacion(
    notificacion_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return NotificacionService(db).obtener(notificacion_id)

@router.post("/{notificacion_id}/vista", response_model=NotificacionArqueoDetailResponse)
async def marcar_vista(
    notificacion_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return NotificacionService(db).marcar_vista(notificacion_id)

@router.post("/{notificacion_id}/resuelta", response_model=NotificacionArqueoDetailResponse)
async def marcar_resuelta(
    notificacion_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return NotificacionService(db).marcar_resuelta(notificacion_id)

@router.delete("/{notificacion_id}")
async def eliminar_notificacion(
    notificacion_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return NotificacionService(db).eliminar(notificacion_id)
