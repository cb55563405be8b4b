# tiendapos/modules/ventas/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import require_roles, ADMIN, PERSONAL_TIENDA
from tiendapos.shared.database.models import EstadoVenta, MetodoPago, RolUsuario
from tiendapos.shared.schemas.ticket import TicketData
from .service import VentaService
from .schemas import (
    VentaCreate, VentaAnularRequest, VentaDetailResponse, VentaListResponse,
    EstadisticasVentasResponse, CarritoRequest,
    ClienteCreate, ClienteResponse, ClienteListResponse
)

router = APIRouter()

# ===== CLIENTES =====

@router.post("/clientes", response_model=ClienteResponse, status_code=201)
async def crear_cliente(
    cliente_data: ClienteCreate,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return VentaService(db).crear_cliente(cliente_data)

@router.get("/clientes", response_model=ClienteListResponse)
async def listar_clientes(
    busqueda: Optional[str] = Query(None, description="Buscar por nombre"),
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return VentaService(db).listar_clientes(busqueda)

@router.get("/clientes/{cliente_id}", response_model=ClienteResponse)
async def obtener_cliente(
    cliente_id: int,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return VentaService(db).obtener_cliente(cliente_id)

# ===== VENTAS =====

@router.post("/", response_model=VentaDetailResponse, status_code=201)
async def crear_venta(
    venta_data: VentaCreate,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    """
    Registrar venta

    **Proceso:**
    - Verifica stock de todos los items antes de escribir nada
    - Inserta venta, detalles y movimientos de salida
    - Suma el total a la caja abierta del día (excepto crédito)

    **Errores:**
    - 409 si algún producto no tiene stock suficiente
    - 400 si faltan datos de crédito
    """
    return VentaService(db).crear_venta(venta_data, current_user.id)

@router.get("/", response_model=VentaListResponse)
async def listar_ventas(
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    id_vendedor: Optional[int] = Query(None),
    estado: Optional[EstadoVenta] = Query(None),
    metodo_pago: Optional[MetodoPago] = Query(None),
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    # Un vendedor solo ve sus propias ventas
    if current_user.rol != RolUsuario.ADMINISTRADOR.value:
        id_vendedor = current_user.id
    return VentaService(db).listar_ventas(fecha_desde, fecha_hasta, id_vendedor, estado, metodo_pago)

@router.get("/hoy", response_model=VentaListResponse)
async def ventas_del_dia(
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    id_vendedor = None if current_user.rol == RolUsuario.ADMINISTRADOR.value else current_user.id
    return VentaService(db).ventas_del_dia(id_vendedor)

@router.get("/estadisticas/productos", response_model=EstadisticasVentasResponse)
async def estadisticas_productos(
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return VentaService(db).estadisticas_productos(fecha_desde, fecha_hasta)

@router.post("/ticket-carrito", response_model=TicketData)
async def ticket_carrito(
    request: CarritoRequest,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    """Pre-cuenta de un carrito sin registrar la venta"""
    return VentaService(db).ticket_carrito(request.items)

@router.get("/{venta_id}", response_model=VentaDetailResponse)
async def obtener_venta(
    venta_id: int,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return VentaService(db).obtener_venta(venta_id)

@router.get("/{venta_id}/ticket", response_model=TicketData)
async def ticket_venta(
    venta_id: int,
    current_user = Depends(require_roles(PERSONAL_TIENDA)),
    db: Session = Depends(get_db)
):
    return VentaService(db).ticket_venta(venta_id)

@router.post("/{venta_id}/anular", response_model=VentaDetailResponse)
async def anular_venta(
    venta_id: int,
    request: VentaAnularRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Anular venta del día

    **Permisos requeridos:** administrador

    Repone stock con movimientos de devolución. Solo ventas de hoy (409 si no).
    """
    return VentaService(db).anular_venta(venta_id, current_user.id, request.motivo)
