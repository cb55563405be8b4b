# tiendapos/modules/categorias/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime

from tiendapos.shared.schemas.common import BaseResponse

class CategoriaCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=255, description="Nombre único de la categoría")
    descripcion: Optional[str] = Field(None, max_length=1000)

    @field_validator('nombre')
    @classmethod
    def validate_nombre(cls, v):
        if not v or not v.strip():
            raise ValueError('El nombre no puede estar vacío')
        return v.strip()

class CategoriaUpdate(BaseModel):
    """Campos editables; los omitidos no cambian"""
    nombre: Optional[str] = Field(None, min_length=1, max_length=255)
    descripcion: Optional[str] = Field(None, max_length=1000)

    @field_validator('nombre')
    @classmethod
    def validate_nombre(cls, v):
        if v is not None and not v.strip():
            raise ValueError('El nombre no puede estar vacío')
        return v.strip() if v else v

class CategoriaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nombre: str
    descripcion: Optional[str] = None
    estado: str
    created_at: datetime
    updated_at: datetime

class CategoriaDetailResponse(BaseResponse):
    categoria: CategoriaResponse

class CategoriaListResponse(BaseResponse):
    data: List[CategoriaResponse]
    total: int
