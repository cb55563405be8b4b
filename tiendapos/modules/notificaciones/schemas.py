# tiendapos/modules/notificaciones/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse

class NotificacionArqueoCreate(BaseModel):
    """Entrada del generador externo de alertas de días sin arqueo"""
    id_mayorista: int = Field(..., gt=0)
    dias_sin_arqueo: int = Field(..., ge=0)
    fecha_ultimo_arqueo: Optional[date] = None
    mensaje: Optional[str] = Field(None, max_length=1000)

class NotificacionArqueoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_mayorista: int
    dias_sin_arqueo: int
    fecha_ultimo_arqueo: Optional[date] = None
    mensaje: Optional[str] = None
    estado: str
    created_at: datetime
    updated_at: datetime

class NotificacionArqueoDetailResponse(BaseResponse):
    notificacion: NotificacionArqueoResponse

class NotificacionArqueoListResponse(BaseResponse):
    data: List[NotificacionArqueoResponse]
    total: int
    pendientes: int

class PurgaResponse(BaseResponse):
    eliminadas: int
