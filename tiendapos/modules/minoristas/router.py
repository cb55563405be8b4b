# tiendapos/modules/minoristas/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import (
    require_roles, verify_distribuidor_access, ADMIN, MINORISTAS
)
from tiendapos.shared.database.models import RolUsuario, EstadoArqueo
from tiendapos.shared.schemas.ticket import TicketData
from .service import MinoristaService
from .schemas import (
    VentaMinoristaCreate, VentaMinoristaUpdate, VentaMinoristaDetailResponse,
    VentaMinoristaListResponse, ResumenDiaResponse,
    ArqueoMinoristaAbrirRequest, ArqueoMinoristaCerrarRequest,
    ArqueoMinoristaDetailResponse, ArqueoMinoristaListResponse,
    PreregistroMinoristaCreate, PreregistroMinoristaResponse, PreregistroMinoristaListResponse,
    EntregaMinoristaRequest
)

router = APIRouter()

def _alcance(current_user, id_minorista: Optional[int]) -> Optional[int]:
    if current_user.rol == RolUsuario.ADMINISTRADOR.value:
        return id_minorista
    if id_minorista is not None:
        verify_distribuidor_access(current_user, id_minorista)
    return current_user.id

# ===== VENTAS =====

@router.post("/ventas", response_model=VentaMinoristaDetailResponse, status_code=201)
async def registrar_venta(
    venta_data: VentaMinoristaCreate,
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    verify_distribuidor_access(current_user, venta_data.id_minorista)
    return MinoristaService(db).registrar_venta(venta_data)

@router.get("/ventas", response_model=VentaMinoristaListResponse)
async def listar_ventas(
    id_minorista: Optional[int] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).listar_ventas(_alcance(current_user, id_minorista), fecha_desde, fecha_hasta)

@router.get("/ventas/resumen", response_model=ResumenDiaResponse)
async def resumen_dia(
    id_minorista: int = Query(...),
    fecha: Optional[date] = Query(None),
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    verify_distribuidor_access(current_user, id_minorista)
    return MinoristaService(db).resumen_dia(id_minorista, fecha)

@router.get("/ventas/ticket", response_model=TicketData)
async def ticket_ventas(
    id_minorista: int = Query(...),
    fecha: Optional[date] = Query(None),
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    verify_distribuidor_access(current_user, id_minorista)
    return MinoristaService(db).ticket_ventas(id_minorista, fecha)

@router.get("/ventas/{venta_id}", response_model=VentaMinoristaDetailResponse)
async def obtener_venta(
    venta_id: int,
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    response = MinoristaService(db).obtener_venta(venta_id)
    verify_distribuidor_access(current_user, response.venta.id_minorista)
    return response

@router.put("/ventas/{venta_id}", response_model=VentaMinoristaDetailResponse)
async def actualizar_venta(
    venta_id: int,
    update_data: VentaMinoristaUpdate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).actualizar_venta(venta_id, update_data)

@router.delete("/ventas/{venta_id}")
async def eliminar_venta(
    venta_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).eliminar_venta(venta_id)

# ===== ARQUEOS =====

@router.post("/arqueos/abrir", response_model=ArqueoMinoristaDetailResponse, status_code=201)
async def abrir_arqueo(
    request: ArqueoMinoristaAbrirRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Abrir arqueo diario de un minorista

    **Permisos requeridos:** administrador

    409 si el minorista ya tiene un arqueo abierto ese día.
    """
    return MinoristaService(db).abrir_arqueo(request)

@router.get("/arqueos", response_model=ArqueoMinoristaListResponse)
async def listar_arqueos(
    id_minorista: Optional[int] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    estado: Optional[EstadoArqueo] = Query(None),
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).listar_arqueos(
        _alcance(current_user, id_minorista), fecha_desde, fecha_hasta, estado
    )

@router.get("/arqueos/abierto", response_model=ArqueoMinoristaDetailResponse)
async def obtener_arqueo_abierto(
    id_minorista: int = Query(...),
    fecha: Optional[date] = Query(None),
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    verify_distribuidor_access(current_user, id_minorista)
    return MinoristaService(db).obtener_arqueo_abierto(id_minorista, fecha)

@router.get("/arqueos/{arqueo_id}", response_model=ArqueoMinoristaDetailResponse)
async def obtener_arqueo(
    arqueo_id: int,
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    response = MinoristaService(db).obtener_arqueo(arqueo_id)
    verify_distribuidor_access(current_user, response.arqueo.id_minorista)
    return response

@router.post("/arqueos/{arqueo_id}/cerrar", response_model=ArqueoMinoristaDetailResponse)
async def cerrar_arqueo(
    arqueo_id: int,
    request: ArqueoMinoristaCerrarRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).cerrar_arqueo(arqueo_id, request)

# ===== PREREGISTROS =====

@router.post("/preregistros", response_model=PreregistroMinoristaResponse)
async def guardar_preregistro(
    data: PreregistroMinoristaCreate,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).guardar_preregistro(data)

@router.get("/preregistros", response_model=PreregistroMinoristaListResponse)
async def listar_preregistros(
    fecha: Optional[date] = Query(None),
    id_minorista: Optional[int] = Query(None),
    current_user = Depends(require_roles(MINORISTAS)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).listar_preregistros(fecha, _alcance(current_user, id_minorista))

@router.post("/preregistros/entregas", response_model=PreregistroMinoristaListResponse)
async def aplicar_entrega(
    request: EntregaMinoristaRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).aplicar_entrega(request)

@router.delete("/preregistros/{preregistro_id}")
async def eliminar_preregistro(
    preregistro_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return MinoristaService(db).eliminar_preregistro(preregistro_id)
