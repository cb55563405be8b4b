from datetime import datetime, timedelta
from typing import Optional
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session
import logging

from tiendapos.config.settings import settings
from tiendapos.shared.database.models import Usuario

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def _recortar(password: str) -> str:
    # bcrypt solo considera los primeros 72 bytes
    return password.encode('utf-8')[:72].decode('utf-8', errors='ignore')

class AuthService:
    """Credenciales de usuario y tokens JWT de sesión"""

    @staticmethod
    def hash_password(password: str) -> str:
        return pwd_context.hash(_recortar(password))

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Optional[Usuario]:
        """Usuario con ese email y contraseña, o None (no distingue cuál falló)"""
        usuario = db.query(Usuario).filter(Usuario.email == email).first()
        if not usuario:
            return None
        try:
            valida = pwd_context.verify(_recortar(password), usuario.password_hash)
        except ValueError as e:
            logger.warning(f"Hash de contraseña ilegible para usuario {usuario.id}: {str(e)}")
            return None
        return usuario if valida else None

    @staticmethod
    def issue_token(usuario: Usuario) -> str:
        """Token con user_id, email y rol; expira según access_token_expire_minutes"""
        claims = {
            "user_id": usuario.id,
            "email": usuario.email,
            "rol": usuario.rol,
            "exp": datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
        }
        return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def decode_token(token: str) -> Optional[dict]:
        try:
            return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            return None
