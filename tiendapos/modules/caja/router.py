# tiendapos/modules/caja/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import require_roles, ADMIN, PERSONAL_TIENDA
from .service import CajaService
from .schemas import (
    CajaAbrirRequest, CajaCerrarRequest, CajaUpdateRequest,
    ArqueoCajaDetailResponse, ArqueoCajaListResponse, ResumenMetodosPagoResponse
)

router = APIRouter()

@router.post("/abrir", response_model=ArqueoCajaDetailResponse, status_code=201)
async def abrir_caja(
    request: CajaAbrirRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Abrir la caja del día

    **Permisos requeridos:** administrador

    Falla con 409 si ya hay una caja abierta hoy.
    """
    return CajaService(db).abrir_caja(request, current_user.id)

@router.get("/abierta", response_model=ArqueoCajaDetailResponse)
async def obtener_caja_abierta(
    fecha: Optional[date] = Query(None, description="Fecha (hoy si se omite)"),
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return CajaService(db).obtener_caja_abierta(fecha)

@router.get("/resumen-metodos", response_model=ResumenMetodosPagoResponse)
async def resumen_metodos_pago(
    fecha: Optional[date] = Query(None),
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    """Totales de ventas completadas por método de pago"""
    return CajaService(db).resumen_metodos_pago(fecha)

@router.get("/", response_model=ArqueoCajaListResponse)
async def listar_cajas(
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return CajaService(db).listar_cajas()

@router.get("/{arqueo_id}", response_model=ArqueoCajaDetailResponse)
async def obtener_caja(
    arqueo_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return CajaService(db).obtener_caja(arqueo_id)

@router.post("/{arqueo_id}/cerrar", response_model=ArqueoCajaDetailResponse)
async def cerrar_caja(
    arqueo_id: int,
    request: CajaCerrarRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Cerrar caja

    diferencia = efectivo_real - (monto_inicial + total_ventas)
    """
    return CajaService(db).cerrar_caja(arqueo_id, request)

@router.put("/{arqueo_id}", response_model=ArqueoCajaDetailResponse)
async def actualizar_caja(
    arqueo_id: int,
    request: CajaUpdateRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return CajaService(db).actualizar_caja(arqueo_id, request)

@router.post("/{arqueo_id}/recalcular", response_model=ArqueoCajaDetailResponse)
async def recalcular_total_ventas(
    arqueo_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Re-derivar total_ventas desde las ventas registradas"""
    return CajaService(db).recalcular_total_ventas(arqueo_id)
