# tiendapos/modules/categorias/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import require_roles, ADMIN, PERSONAL_TIENDA
from .service import CategoriaService
from .schemas import (
    CategoriaCreate, CategoriaUpdate, CategoriaDetailResponse, CategoriaListResponse
)

router = APIRouter()

@router.post("/", response_model=CategoriaDetailResponse, status_code=201)
async def crear_categoria(
    data: CategoriaCreate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Crear categoría

    **Permisos requeridos:** administrador

    El nombre no puede repetirse (sin distinguir mayúsculas).
    """
    return CategoriaService(db).crear(data)

@router.get("/", response_model=CategoriaListResponse)
async def listar_categorias(
    incluir_inactivas: bool = Query(True, description="Incluir categorías dadas de baja"),
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return CategoriaService(db).listar(incluir_inactivas)

@router.get("/{categoria_id}", response_model=CategoriaDetailResponse)
async def obtener_categoria(
    categoria_id: int,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return CategoriaService(db).obtener(categoria_id)

@router.put("/{categoria_id}", response_model=CategoriaDetailResponse)
async def actualizar_categoria(
    categoria_id: int,
    data: CategoriaUpdate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return CategoriaService(db).actualizar(categoria_id, data)

@router.patch("/{categoria_id}/estado", response_model=CategoriaDetailResponse)
async def cambiar_estado_categoria(
    categoria_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return CategoriaService(db).cambiar_estado(categoria_id)

@router.delete("/{categoria_id}", response_model=CategoriaDetailResponse)
async def eliminar_categoria(
    categoria_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Baja lógica: la categoría queda inactiva"""
    return CategoriaService(db).eliminar(categoria_id)
