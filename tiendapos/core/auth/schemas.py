from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

class UserLogin(BaseModel):
    """Schema para login de usuario"""
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "email": "vendedor@tiendapos.com",
            "password": "vendedor123"
        }
    })

    email: str = Field(..., description="Email del usuario")
    password: str = Field(..., min_length=6, description="Contraseña del usuario")

class UserResponse(BaseModel):
    """Schema para respuesta de usuario"""
    model_config = ConfigDict(from_attributes=True, json_schema_extra={
        "example": {
            "id": 1,
            "email": "vendedor@tiendapos.com",
            "nombre": "Juan Pérez",
            "rol": "vendedor",
            "is_active": True
        }
    })

    id: int
    email: str
    nombre: str
    rol: str
    is_active: bool

class TokenResponse(BaseModel):
    """Schema para respuesta de token"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class TokenPayload(BaseModel):
    """Schema para payload del token"""
    user_id: int
    email: str
    rol: str
    exp: Optional[datetime] = None
