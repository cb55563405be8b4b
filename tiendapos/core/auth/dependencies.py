from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from tiendapos.config.database import get_db
from tiendapos.shared.database.models import Usuario, RolUsuario
from tiendapos.core.auth.service import AuthService

security = HTTPBearer()

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "No se pudieron validar las credenciales"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Permisos insuficientes"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Usuario:
    """Obtener usuario actual desde el token"""

    payload = AuthService.decode_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Token inválido o expirado")

    user_id: int = payload.get("user_id")
    if user_id is None:
        raise AuthenticationError("Payload del token inválido")

    user = db.query(Usuario).filter(Usuario.id == user_id).first()

    if user is None:
        raise AuthenticationError("Usuario no encontrado")

    if not user.is_active:
        raise AuthenticationError("Usuario inactivo")

    return user

def require_roles(allowed_roles: List[str]):
    """Factory para crear dependency que requiere roles específicos"""
    def role_checker(current_user: Usuario = Depends(get_current_user)) -> Usuario:
        if current_user.rol not in allowed_roles:
            raise AuthorizationError(
                f"Rol '{current_user.rol}' no autorizado. Roles permitidos: {allowed_roles}"
            )
        return current_user
    return role_checker

ADMIN = [RolUsuario.ADMINISTRADOR.value]
PERSONAL_TIENDA = [RolUsuario.ADMINISTRADOR.value, RolUsuario.VENDEDOR.value]
MAYORISTAS = [RolUsuario.ADMINISTRADOR.value, RolUsuario.MAYORISTA.value]
MINORISTAS = [RolUsuario.ADMINISTRADOR.value, RolUsuario.MINORISTA.value]
DISTRIBUIDORES = [
    RolUsuario.ADMINISTRADOR.value, RolUsuario.MAYORISTA.value, RolUsuario.MINORISTA.value
]

def can_access_distribuidor(user: Usuario, id_distribuidor: int) -> bool:
    """El administrador ve a todos; un distribuidor solo a sí mismo"""
    if user.rol == RolUsuario.ADMINISTRADOR.value:
        return True
    return user.id == id_distribuidor

def verify_distribuidor_access(user: Usuario, id_distribuidor: int) -> None:
    if not can_access_distribuidor(user, id_distribuidor):
        raise AuthorizationError(
            f"No tienes permisos para acceder a los registros del distribuidor {id_distribuidor}"
        )
