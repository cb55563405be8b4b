from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from tiendapos.config.database import get_db
from tiendapos.core.auth.service import AuthService
from tiendapos.core.auth.schemas import UserLogin, TokenResponse, UserResponse
from tiendapos.shared.database.models import Usuario
from tiendapos.core.auth.dependencies import get_current_user

router = APIRouter()

def _authenticate(db: Session, email: str, password: str) -> TokenResponse:
    user = AuthService.authenticate(db, email, password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuario inactivo"
        )

    return TokenResponse(
        access_token=AuthService.issue_token(user),
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )

@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Endpoint de login para obtener token de acceso

    **Parámetros:**
    - **username**: Email del usuario
    - **password**: Contraseña del usuario
    """
    return _authenticate(db, form_data.username, form_data.password)

@router.post("/login-json", response_model=TokenResponse)
async def login_json(
    user_login: UserLogin,
    db: Session = Depends(get_db)
):
    """Login alternativo que acepta JSON"""
    return _authenticate(db, user_login.email, user_login.password)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: Usuario = Depends(get_current_user)
):
    """
    Obtener información del usuario actual

    **Headers requeridos:**
    - Authorization: Bearer {token}
    """
    return UserResponse.model_validate(current_user)
