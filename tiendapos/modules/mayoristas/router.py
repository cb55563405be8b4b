# tiendapos/modules/mayoristas/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import (
    require_roles, verify_distribuidor_access, ADMIN, MAYORISTAS
)
from tiendapos.shared.database.models import RolUsuario, EstadoArqueo, EstadoPagoMayorista
from tiendapos.shared.schemas.ticket import TicketData
from .service import MayoristaService
from .schemas import (
    VentaMayoristaCreate, VentaMayoristaUpdate, VentaMayoristaDetailResponse,
    VentaMayoristaListResponse, ResumenPeriodoResponse,
    ArqueoMayoristaAbrirRequest, ArqueoMayoristaCerrarRequest,
    ArqueoMayoristaDetailResponse, ArqueoMayoristaListResponse, SaldoRestanteListResponse,
    PreregistroMayoristaCreate, PreregistroMayoristaResponse, PreregistroMayoristaListResponse,
    EntregaMayoristaRequest,
    PagoMayoristaCreate, PagoMayoristaVerificarRequest, PagoMayoristaUpdate,
    PagoMayoristaDetailResponse, PagoMayoristaListResponse
)

router = APIRouter()

def _alcance(current_user, id_mayorista: Optional[int]) -> Optional[int]:
    """Un mayorista solo consulta sus propios registros"""
    if current_user.rol == RolUsuario.ADMINISTRADOR.value:
        return id_mayorista
    if id_mayorista is not None:
        verify_distribuidor_access(current_user, id_mayorista)
    return current_user.id

# ===== VENTAS =====

@router.post("/ventas", response_model=VentaMayoristaDetailResponse, status_code=201)
async def registrar_venta(
    venta_data: VentaMayoristaCreate,
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    """
    Registrar asiento de venta mayorista

    total = (cantidad_vendida + cantidad_aumento) x precio_por_mayor
    """
    verify_distribuidor_access(current_user, venta_data.id_mayorista)
    return MayoristaService(db).registrar_venta(venta_data)

@router.get("/ventas", response_model=VentaMayoristaListResponse)
async def listar_ventas(
    id_mayorista: Optional[int] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    id_producto: Optional[int] = Query(None),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    return MayoristaService(db).listar_ventas(
        _alcance(current_user, id_mayorista), fecha_desde, fecha_hasta, id_producto
    )

@router.get("/ventas/resumen", response_model=ResumenPeriodoResponse)
async def resumen_periodo(
    id_mayorista: int = Query(...),
    fecha_desde: date = Query(...),
    fecha_hasta: date = Query(...),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    """Unidades vendidas, aumentos y montos del período"""
    verify_distribuidor_access(current_user, id_mayorista)
    return MayoristaService(db).resumen_periodo(id_mayorista, fecha_desde, fecha_hasta)

@router.get("/ventas/ticket", response_model=TicketData)
async def ticket_ventas(
    id_mayorista: int = Query(...),
    fecha: Optional[date] = Query(None),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    verify_distribuidor_access(current_user, id_mayorista)
    return MayoristaService(db).ticket_ventas(id_mayorista, fecha)

@router.get("/ventas/{venta_id}", response_model=VentaMayoristaDetailResponse)
async def obtener_venta(
    venta_id: int,
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    response = MayoristaService(db).obtener_venta(venta_id)
    verify_distribuidor_access(current_user, response.venta.id_mayorista)
    return response

@router.put("/ventas/{venta_id}", response_model=VentaMayoristaDetailResponse)
async def actualizar_venta(
    venta_id: int,
    update_data: VentaMayoristaUpdate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MayoristaService(db).actualizar_venta(venta_id, update_data)

@router.delete("/ventas/{venta_id}")
async def eliminar_venta(
    venta_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MayoristaService(db).eliminar_venta(venta_id)

# ===== ARQUEOS =====

@router.post("/arqueos/abrir", response_model=ArqueoMayoristaDetailResponse, status_code=201)
async def abrir_arqueo(
    request: ArqueoMayoristaAbrirRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Abrir período de un mayorista

    **Permisos requeridos:** administrador

    Los saldos restantes del último cierre pasan a saldos iniciales y
    generan los preregistros de la fecha de inicio. 409 si ya hay uno abierto.
    """
    return MayoristaService(db).abrir_arqueo(request)

@router.get("/arqueos", response_model=ArqueoMayoristaListResponse)
async def listar_arqueos(
    id_mayorista: Optional[int] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    estado: Optional[EstadoArqueo] = Query(None),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    return MayoristaService(db).listar_arqueos(
        _alcance(current_user, id_mayorista), fecha_desde, fecha_hasta, estado
    )

@router.get("/arqueos/abierto", response_model=ArqueoMayoristaDetailResponse)
async def obtener_arqueo_abierto(
    id_mayorista: int = Query(...),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    verify_distribuidor_access(current_user, id_mayorista)
    return MayoristaService(db).obtener_arqueo_abierto(id_mayorista)

@router.get("/arqueos/{arqueo_id}", response_model=ArqueoMayoristaDetailResponse)
async def obtener_arqueo(
    arqueo_id: int,
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    response = MayoristaService(db).obtener_arqueo(arqueo_id)
    verify_distribuidor_access(current_user, response.arqueo.id_mayorista)
    return response

@router.post("/arqueos/{arqueo_id}/cerrar", response_model=ArqueoMayoristaDetailResponse)
async def cerrar_arqueo(
    arqueo_id: int,
    request: ArqueoMayoristaCerrarRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Cerrar período guardando saldos restantes y efectivo recibido"""
    return MayoristaService(db).cerrar_arqueo(arqueo_id, request)

@router.get("/saldos", response_model=SaldoRestanteListResponse)
async def listar_saldos(
    id_mayorista: int = Query(...),
    fecha: Optional[date] = Query(None),
    id_arqueo: Optional[int] = Query(None),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    verify_distribuidor_access(current_user, id_mayorista)
    return MayoristaService(db).listar_saldos(id_mayorista, fecha, id_arqueo)

# ===== PREREGISTROS =====

@router.post("/preregistros", response_model=PreregistroMayoristaResponse)
async def guardar_preregistro(
    data: PreregistroMayoristaCreate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Crea el preregistro o reemplaza la cantidad si ya existe para la fecha"""
    return MayoristaService(db).guardar_preregistro(data)

@router.get("/preregistros", response_model=PreregistroMayoristaListResponse)
async def listar_preregistros(
    fecha: Optional[date] = Query(None, description="Fecha (hoy si se omite)"),
    id_mayorista: Optional[int] = Query(None),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    return MayoristaService(db).listar_preregistros(fecha, _alcance(current_user, id_mayorista))

@router.post("/preregistros/entregas", response_model=PreregistroMayoristaListResponse)
async def aplicar_entrega(
    request: EntregaMayoristaRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Registrar entrega contra preregistros

    400 si algún producto no tiene preregistro para la fecha (no se aplica nada).
    """
    return MayoristaService(db).aplicar_entrega(request)

@router.delete("/preregistros/{preregistro_id}")
async def eliminar_preregistro(
    preregistro_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MayoristaService(db).eliminar_preregistro(preregistro_id)

# ===== PAGOS =====

@router.post("/pagos", response_model=PagoMayoristaDetailResponse, status_code=201)
async def crear_pago(
    data: PagoMayoristaCreate,
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    service = MayoristaService(db)
    venta = service.obtener_venta(data.id_venta).venta
    verify_distribuidor_access(current_user, venta.id_mayorista)
    return service.crear_pago(data)

@router.get("/pagos", response_model=PagoMayoristaListResponse)
async def listar_pagos(
    id_mayorista: Optional[int] = Query(None),
    estado: Optional[EstadoPagoMayorista] = Query(None),
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    return MayoristaService(db).listar_pagos(_alcance(current_user, id_mayorista), estado)

@router.get("/pagos/{pago_id}", response_model=PagoMayoristaDetailResponse)
async def obtener_pago(
    pago_id: int,
    current_user = Depends(require_roles(MAYORISTAS)),
    db: Session = Depends(get_db)
):
    response = MayoristaService(db).obtener_pago(pago_id)
    verify_distribuidor_access(current_user, response.pago.id_mayorista)
    return response

@router.post("/pagos/{pago_id}/verificar", response_model=PagoMayoristaDetailResponse)
async def verificar_pago(
    pago_id: int,
    request: PagoMayoristaVerificarRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Verificar recepción del pago

    **Permisos requeridos:** administrador

    diferencia = monto_recibido - monto_esperado. Un pago verificado no
    vuelve a pendiente.
    """
    return MayoristaService(db).verificar_pago(pago_id, current_user.id, request)

@router.put("/pagos/{pago_id}", response_model=PagoMayoristaDetailResponse)
async def actualizar_pago(
    pago_id: int,
    request: PagoMayoristaUpdate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Editar el monto recibido de un pago verificado"""
    return MayoristaService(db).actualizar_pago(pago_id, request)
