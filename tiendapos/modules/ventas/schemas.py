# tiendapos/modules/ventas/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse
from tiendapos.shared.database.models import MetodoPago

# ===== CLIENTES =====

class ClienteCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=255)
    ci_nit: Optional[str] = Field(None, max_length=50)
    telefono: Optional[str] = Field(None, max_length=50)

    @field_validator('nombre')
    @classmethod
    def validate_nombre(cls, v):
        if not v.strip():
            raise ValueError('El nombre no puede estar vacío')
        return v.strip()

class ClienteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nombre: str
    ci_nit: Optional[str] = None
    telefono: Optional[str] = None

class ClienteListResponse(BaseResponse):
    data: List[ClienteResponse]
    total: int

# ===== VENTAS =====

class ItemVenta(BaseModel):
    id_producto: int = Field(..., gt=0, description="ID del producto")
    cantidad: int = Field(..., gt=0, description="Cantidad")
    precio_unitario: Optional[Decimal] = Field(
        None, ge=0, description="Precio unitario (precio del producto si se omite)"
    )

class VentaCreate(BaseModel):
    """
    Venta minorista.

    Los campos de crédito solo se usan cuando metodo_pago = credito; su
    validación (cliente y 1..120 cuotas) la hace el servicio.
    """
    items: List[ItemVenta] = Field(..., min_length=1, description="Items de la venta")
    metodo_pago: MetodoPago
    id_cliente: Optional[int] = None
    meses_credito: Optional[int] = Field(None, description="Número de cuotas (solo crédito)")
    cuota_inicial: Optional[Decimal] = Field(None, ge=0, description="Cuota inicial (solo crédito)")
    tasa_interes: Optional[Decimal] = Field(None, ge=0, description="Interés mensual en % (solo crédito)")

class VentaAnularRequest(BaseModel):
    motivo: str = Field(..., min_length=1, max_length=500, description="Motivo de la anulación")

class DetalleVentaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_producto: int
    cantidad: int
    precio_unitario: Decimal
    subtotal: Decimal

class VentaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    fecha: date
    hora: str
    total: Decimal
    metodo_pago: str
    id_cliente: Optional[int] = None
    id_vendedor: int
    estado: str
    meses_credito: Optional[int] = None
    fecha_vencimiento: Optional[date] = None
    cuota_inicial: Optional[Decimal] = None
    monto_pagado: Optional[Decimal] = None
    estado_credito: Optional[str] = None
    tasa_interes: Optional[Decimal] = None
    monto_interes: Optional[Decimal] = None
    interes_eximido: Optional[bool] = None
    total_con_interes: Optional[Decimal] = None
    detalles: List[DetalleVentaResponse] = []
    created_at: datetime

class VentaDetailResponse(BaseResponse):
    venta: VentaResponse

class VentaListResponse(BaseResponse):
    data: List[VentaResponse]
    total: int
    monto_total: Decimal

class EstadisticaProducto(BaseModel):
    id_producto: int
    codigo: str
    nombre: str
    cantidad_vendida: int
    monto_total: Decimal

class EstadisticasVentasResponse(BaseResponse):
    fecha_desde: Optional[date] = None
    fecha_hasta: Optional[date] = None
    productos: List[EstadisticaProducto]

class CarritoRequest(BaseModel):
    items: List[ItemVenta] = Field(..., min_length=1)
