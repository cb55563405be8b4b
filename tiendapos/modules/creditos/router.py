# tiendapos/modules/creditos/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import require_roles, ADMIN, PERSONAL_TIENDA
from tiendapos.shared.database.models import EstadoCredito
from .service import CreditoService
from .schemas import (
    VentaCreditoDetailResponse, VentaCreditoListResponse, EximirInteresRequest,
    PagoCreditoCreate, PagoCreditoUpdate, PagoCreditoOperacionResponse, PagoCreditoListResponse
)

router = APIRouter()

@router.get("/", response_model=VentaCreditoListResponse)
async def listar_creditos(
    estado_credito: Optional[EstadoCredito] = Query(None, description="Filtrar por estado recalculado"),
    id_cliente: Optional[int] = Query(None),
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    """
    Listar ventas a crédito

    Interés, monto pagado, saldo y estado se recalculan a la fecha actual.
    """
    return CreditoService(db).listar_creditos(estado_credito, id_cliente)

@router.get("/{venta_id}", response_model=VentaCreditoDetailResponse)
async def obtener_credito(
    venta_id: int,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return CreditoService(db).obtener_credito(venta_id)

@router.put("/{venta_id}/eximir-interes", response_model=VentaCreditoDetailResponse)
async def eximir_interes(
    venta_id: int,
    request: EximirInteresRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Eximir (o volver a cobrar) el interés de una venta a crédito

    **Permisos requeridos:** administrador
    """
    return CreditoService(db).eximir_interes(venta_id, request.interes_eximido)

@router.get("/{venta_id}/pagos", response_model=PagoCreditoListResponse)
async def listar_pagos(
    venta_id: int,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return CreditoService(db).listar_pagos(venta_id)

@router.post("/{venta_id}/pagos", response_model=PagoCreditoOperacionResponse, status_code=201)
async def registrar_pago(
    venta_id: int,
    pago_data: PagoCreditoCreate,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    """
    Registrar pago de una cuota

    **Validaciones:**
    - La cuota debe estar entre 1 y el número de cuotas y no estar pagada
    - La fecha de pago no puede ser futura
    - El monto no puede exceder el saldo pendiente (margen de redondeo 0.02)
    """
    return CreditoService(db).registrar_pago(venta_id, pago_data, current_user.id)

@router.put("/pagos/{pago_id}", response_model=PagoCreditoOperacionResponse)
async def actualizar_pago(
    pago_id: int,
    update_data: PagoCreditoUpdate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return CreditoService(db).actualizar_pago(pago_id, update_data)

@router.delete("/pagos/{pago_id}", response_model=PagoCreditoOperacionResponse)
async def eliminar_pago(
    pago_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return CreditoService(db).eliminar_pago(pago_id)
