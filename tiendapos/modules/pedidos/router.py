# tiendapos/modules/pedidos/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from tiendapos.config.database import get_db
from tiendapos.core.auth.dependencies import (
    require_roles, verify_distribuidor_access, ADMIN, DISTRIBUIDORES
)
from tiendapos.shared.database.models import RolUsuario, EstadoPedido
from .service import PedidoService
from .schemas import (
    PedidoCreate, DetallePedidoItem, DetalleCantidadRequest, PedidoEstadoRequest,
    PedidoEntregaRequest, PedidoDetailResponse, PedidoListResponse,
    DetallePedidoDetailResponse, PedidoEntregaResponse
)

router = APIRouter()

def _pedido_propio(service: PedidoService, current_user, pedido_id: int) -> PedidoDetailResponse:
    response = service.obtener(pedido_id)
    verify_distribuidor_access(current_user, response.pedido.id_usuario)
    return response

@router.post("/", response_model=PedidoDetailResponse, status_code=201)
async def crear_pedido(
    data: PedidoCreate,
    current_user = Depends(require_roles(DISTRIBUIDORES)),
    db: Session = Depends(get_db)
):
    """
    Crear pedido de reposición

    Un distribuidor solo crea pedidos a su nombre; el tipo (mayorista o
    minorista) se toma de su rol.
    """
    verify_distribuidor_access(current_user, data.id_usuario)
    return PedidoService(db).crear(data)

@router.get("/", response_model=PedidoListResponse)
async def listar_pedidos(
    id_usuario: Optional[int] = Query(None),
    estado: Optional[EstadoPedido] = Query(None),
    current_user = Depends(require_roles(DISTRIBUIDORES)),
    db: Session = Depends(get_db)
):
    if current_user.rol != RolUsuario.ADMINISTRADOR.value:
        if id_usuario is not None:
            verify_distribuidor_access(current_user, id_usuario)
        id_usuario = current_user.id
    return PedidoService(db).listar(id_usuario, estado)

@router.get("/{pedido_id}", response_model=PedidoDetailResponse)
async def obtener_pedido(
    pedido_id: int,
    current_user = Depends(require_roles(DISTRIBUIDORES)),
    db: Session = Depends(get_db)
):
    return _pedido_propio(PedidoService(db), current_user, pedido_id)

@router.patch("/{pedido_id}/estado", response_model=PedidoDetailResponse)
async def cambiar_estado_pedido(
    pedido_id: int,
    request: PedidoEstadoRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """Marcar como enviado o cancelado"""
    return PedidoService(db).cambiar_estado(pedido_id, request)

@router.post("/{pedido_id}/entregar", response_model=PedidoEntregaResponse)
async def entregar_pedido(
    pedido_id: int,
    request: PedidoEntregaRequest,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Entregar pedido

    400 si algún producto no tiene preregistro para la fecha (no se aplica nada).
    """
    return PedidoService(db).entregar(pedido_id, request.fecha)

@router.delete("/{pedido_id}")
async def eliminar_pedido(
    pedido_id: int,
    current_user = Depends(require_roles(ADMIN)),
    db: Session = Depends(get_db)
):
    return PedidoService(db).eliminar(pedido_id)

# ===== DETALLES =====

@router.post("/{pedido_id}/detalles", response_model=DetallePedidoDetailResponse, status_code=201)
async def agregar_detalle(
    pedido_id: int,
    item: DetallePedidoItem,
    current_user = Depends(require_roles(DISTRIBUIDORES)),
    db: Session = Depends(get_db)
):
    service = PedidoService(db)
    _pedido_propio(service, current_user, pedido_id)
    return service.agregar_detalle(pedido_id, item)

@router.put("/{pedido_id}/detalles/{detalle_id}", response_model=DetallePedidoDetailResponse)
async def actualizar_detalle(
    pedido_id: int,
    detalle_id: int,
    request: DetalleCantidadRequest,
    current_user = Depends(require_roles(DISTRIBUIDORES)),
    db: Session = Depends(get_db)
):
    service = PedidoService(db)
    _pedido_propio(service, current_user, pedido_id)
    return service.actualizar_detalle(pedido_id, detalle_id, request.cantidad)

@router.delete("/{pedido_id}/detalles/{detalle_id}")
async def eliminar_detalle(
    pedido_id: int,
    detalle_id: int,
    current_user = Depends(require_roles(DISTRIBUIDORES)),
    db: Session = Depends(get_db)
):
    service = PedidoService(db)
    _pedido_propio(service, current_user, pedido_id)
    return service.eliminar_detalle(pedido_id, detalle_id)
