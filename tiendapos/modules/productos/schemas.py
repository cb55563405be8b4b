# tiendapos/modules/productos/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse
from tiendapos.shared.database.models import TipoMovimiento, MotivoMovimiento

# ===== PRODUCTO SCHEMAS =====

class ProductoCreate(BaseModel):
    """Schema para crear un producto"""
    codigo: str = Field(..., min_length=1, max_length=100, description="Código único del producto")
    nombre: str = Field(..., min_length=1, max_length=255, description="Nombre del producto")
    descripcion: Optional[str] = None
    precio_unitario: Decimal = Field(..., ge=0, description="Precio de venta minorista")
    precio_mayor: Optional[Decimal] = Field(None, ge=0, description="Precio por mayor")
    stock_inicial: int = Field(0, ge=0, description="Stock inicial (se registra como compra)")
    stock_minimo: int = Field(0, ge=0, description="Umbral de stock bajo")
    id_categoria: Optional[int] = Field(None, gt=0, description="Categoría activa del producto")

    @field_validator('codigo', 'nombre')
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('El campo no puede estar vacío')
        return v.strip()

class ProductoResponse(BaseModel):
    """Producto con stock cacheado"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    codigo: str
    nombre: str
    descripcion: Optional[str] = None
    precio_unitario: Decimal
    precio_mayor: Optional[Decimal] = None
    stock_actual: int
    stock_minimo: int
    estado: str
    id_categoria: Optional[int] = None
    created_at: datetime
    updated_at: datetime

class ProductoDetailResponse(BaseResponse):
    producto: ProductoResponse

class ProductoListResponse(BaseResponse):
    data: List[ProductoResponse]
    total: int

class AjusteStockRequest(BaseModel):
    """Fijar el stock a una cantidad absoluta"""
    nueva_cantidad: int = Field(..., ge=0, description="Nuevo stock del producto")
    observacion: Optional[str] = Field(None, max_length=500)

# ===== MOVIMIENTOS SCHEMAS =====

class MovimientoCreate(BaseModel):
    """Movimiento manual de inventario"""
    id_producto: int = Field(..., gt=0)
    tipo_movimiento: TipoMovimiento
    cantidad: int = Field(..., gt=0)
    motivo: MotivoMovimiento
    observacion: Optional[str] = Field(None, max_length=500)

    @field_validator('motivo')
    @classmethod
    def validate_motivo(cls, v):
        if v == MotivoMovimiento.VENTA:
            raise ValueError('Los movimientos de venta se generan al registrar una venta')
        return v

class MovimientoAnularRequest(BaseModel):
    motivo_anulacion: str = Field(..., min_length=1, max_length=500)

class MovimientoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_producto: int
    tipo_movimiento: str
    cantidad: int
    motivo: str
    fecha: date
    id_usuario: Optional[int] = None
    id_venta: Optional[int] = None
    observacion: Optional[str] = None
    anulado: bool
    id_usuario_anulacion: Optional[int] = None
    motivo_anulacion: Optional[str] = None
    fecha_anulacion: Optional[datetime] = None
    created_at: datetime

class MovimientoListResponse(BaseResponse):
    data: List[MovimientoResponse]
    total: int

class ConsistenciaStockResponse(BaseResponse):
    """Comparación entre el stock cacheado y el ledger de movimientos"""
    id_producto: int
    stock_actual: int
    stock_movimientos: int
    diferencia: int
    consistente: bool
