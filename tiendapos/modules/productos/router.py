# tiendapos/modules/productos/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import require_roles, ADMIN, PERSONAL_TIENDA
from .service import ProductoService
from .schemas import (
    ProductoCreate, ProductoDetailResponse, ProductoListResponse, AjusteStockRequest,
    MovimientoCreate, MovimientoAnularRequest, MovimientoResponse, MovimientoListResponse,
    ConsistenciaStockResponse
)

router = APIRouter()

# ===== PRODUCTOS =====

@router.post("/", response_model=ProductoDetailResponse, status_code=201)
async def crear_producto(
    producto_data: ProductoCreate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Crear producto

    **Permisos requeridos:** administrador

    El stock inicial queda registrado como movimiento de compra.
    """
    return ProductoService(db).crear_producto(producto_data, current_user.id)

@router.get("/", response_model=ProductoListResponse)
async def listar_productos(
    solo_activos: bool = Query(False, description="Solo productos activos"),
    busqueda: Optional[str] = Query(None, description="Buscar por nombre o código"),
    id_categoria: Optional[int] = Query(None, description="Filtrar por categoría"),
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return ProductoService(db).listar_productos(solo_activos, busqueda, id_categoria)

@router.get("/stock-bajo", response_model=ProductoListResponse)
async def productos_stock_bajo(
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    """Productos activos con stock_actual <= stock_minimo"""
    return ProductoService(db).productos_stock_bajo()

@router.get("/movimientos", response_model=MovimientoListResponse)
async def listar_movimientos(
    id_producto: Optional[int] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return ProductoService(db).listar_movimientos(id_producto, fecha_desde, fecha_hasta)

@router.post("/movimientos", response_model=MovimientoResponse, status_code=201)
async def registrar_movimiento(
    movimiento_data: MovimientoCreate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Registrar movimiento manual (compra, ajuste, devolución)

    Los movimientos de venta solo se generan al registrar ventas.
    """
    return ProductoService(db).registrar_movimiento(movimiento_data, current_user.id)

@router.post("/movimientos/{movimiento_id}/anular", response_model=MovimientoResponse)
async def anular_movimiento(
    movimiento_id: int,
    anulacion: MovimientoAnularRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return ProductoService(db).anular_movimiento(
        movimiento_id, current_user.id, anulacion.motivo_anulacion
    )

@router.get("/{producto_id}", response_model=ProductoDetailResponse)
async def obtener_producto(
    producto_id: int,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return ProductoService(db).obtener_producto(producto_id)

@router.patch("/{producto_id}/estado", response_model=ProductoDetailResponse)
async def cambiar_estado_producto(
    producto_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Alternar producto activo/inactivo"""
    return ProductoService(db).cambiar_estado(producto_id)

@router.put("/{producto_id}/stock", response_model=ProductoDetailResponse)
async def ajustar_stock(
    producto_id: int,
    ajuste: AjusteStockRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Fijar el stock a una cantidad absoluta

    Si el registro del movimiento de ajuste falla, el stock queda ajustado
    igualmente y el fallo se registra en el log.
    """
    return ProductoService(db).ajustar_stock(producto_id, ajuste, current_user.id)

@router.get("/{producto_id}/consistencia", response_model=ConsistenciaStockResponse)
async def verificar_consistencia(
    producto_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Comparar stock_actual contra el ledger de movimientos"""
    return ProductoService(db).verificar_consistencia(producto_id)
