# tiendapos/modules/pedidos/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse
from tiendapos.shared.database.models import EstadoPedido

class DetallePedidoItem(BaseModel):
    id_producto: int = Field(..., gt=0)
    cantidad: int = Field(..., gt=0)

class PedidoCreate(BaseModel):
    """Pedido de un mayorista o minorista; el tipo se toma del rol del usuario"""
    id_usuario: int = Field(..., gt=0)
    detalles: List[DetallePedidoItem] = Field(..., min_length=1)
    observaciones: Optional[str] = Field(None, max_length=1000)

    @field_validator('detalles')
    @classmethod
    def validate_productos_unicos(cls, v):
        ids = [d.id_producto for d in v]
        if len(ids) != len(set(ids)):
            raise ValueError('Cada producto puede aparecer una sola vez en el pedido')
        return v

class DetalleCantidadRequest(BaseModel):
    cantidad: int = Field(..., gt=0)

class PedidoEstadoRequest(BaseModel):
    """Envío o cancelación; la entrega tiene su propia operación"""
    estado: EstadoPedido
    observaciones: Optional[str] = Field(None, max_length=1000)

class PedidoEntregaRequest(BaseModel):
    """Fecha de los preregistros contra los que se entrega (hoy por defecto)"""
    fecha: Optional[date] = None

class DetallePedidoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_pedido: int
    id_producto: int
    cantidad: int

class PedidoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_usuario: int
    tipo_usuario: str
    estado: str
    fecha_pedido: date
    fecha_entrega: Optional[date] = None
    observaciones: Optional[str] = None
    detalles: List[DetallePedidoResponse] = []
    created_at: datetime
    updated_at: datetime

class PedidoDetailResponse(BaseResponse):
    pedido: PedidoResponse

class PedidoListResponse(BaseResponse):
    data: List[PedidoResponse]
    total: int

class DetallePedidoDetailResponse(BaseResponse):
    detalle: DetallePedidoResponse

class PedidoEntregaResponse(BaseResponse):
    """Pedido entregado con los asientos de aumento que generó"""
    pedido: PedidoResponse
    ventas_registradas: List[int]
    total_aumento: Decimal
