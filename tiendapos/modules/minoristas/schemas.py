# tiendapos/modules/minoristas/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse

# ===== VENTAS MINORISTAS =====

class VentaMinoristaCreate(BaseModel):
    id_minorista: int = Field(..., gt=0)
    id_producto: int = Field(..., gt=0)
    cantidad_vendida: int = Field(0, ge=0)
    cantidad_aumento: int = Field(0, ge=0)
    precio_unitario: Optional[Decimal] = Field(None, ge=0, description="Precio (precio del producto si se omite)")
    fecha: Optional[date] = None
    id_pedido: Optional[int] = None
    observaciones: Optional[str] = Field(None, max_length=1000)

class VentaMinoristaUpdate(BaseModel):
    cantidad_vendida: Optional[int] = Field(None, ge=0)
    cantidad_aumento: Optional[int] = Field(None, ge=0)
    precio_unitario: Optional[Decimal] = Field(None, ge=0)
    observaciones: Optional[str] = Field(None, max_length=1000)

class VentaMinoristaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_minorista: int
    id_producto: int
    cantidad_vendida: int
    cantidad_aumento: int
    precio_unitario: Decimal
    total: Decimal
    fecha: date
    hora: str
    id_pedido: Optional[int] = None
    observaciones: Optional[str] = None
    created_at: datetime

class VentaMinoristaDetailResponse(BaseResponse):
    venta: VentaMinoristaResponse

class VentaMinoristaListResponse(BaseResponse):
    data: List[VentaMinoristaResponse]
    total: int
    monto_total: Decimal

class ResumenDiaResponse(BaseResponse):
    id_minorista: int
    fecha: date
    cantidad_registros: int
    unidades_vendidas: int
    unidades_aumento: int
    monto_total: Decimal

# ===== ARQUEOS MINORISTAS =====

class SaldoItem(BaseModel):
    id_producto: int = Field(..., gt=0)
    cantidad_restante: int = Field(..., ge=0)

class ArqueoMinoristaAbrirRequest(BaseModel):
    id_minorista: int = Field(..., gt=0)
    fecha: Optional[date] = Field(None, description="Día del arqueo (hoy si se omite)")
    observaciones: Optional[str] = Field(None, max_length=1000)

class ArqueoMinoristaCerrarRequest(BaseModel):
    saldos_restantes: List[SaldoItem] = Field(default_factory=list)
    efectivo_recibido: Decimal = Field(..., ge=0)
    observaciones: Optional[str] = Field(None, max_length=1000)

    @field_validator('saldos_restantes')
    @classmethod
    def validate_sin_duplicados(cls, v):
        ids = [s.id_producto for s in v]
        if len(ids) != len(set(ids)):
            raise ValueError('Un producto no puede aparecer dos veces en los saldos')
        return v

class ArqueoMinoristaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_minorista: int
    fecha: date
    hora_apertura: Optional[str] = None
    hora_cierre: Optional[str] = None
    ventas_del_periodo: Decimal
    saldos_iniciales: List[SaldoItem] = []
    saldos_restantes: List[SaldoItem] = []
    efectivo_recibido: Decimal
    observaciones: Optional[str] = None
    estado: str

class ArqueoMinoristaDetailResponse(BaseResponse):
    arqueo: Optional[ArqueoMinoristaResponse] = None

class ArqueoMinoristaListResponse(BaseResponse):
    data: List[ArqueoMinoristaResponse]
    total: int

# ===== PREREGISTROS =====

class PreregistroMinoristaCreate(BaseModel):
    id_minorista: int = Field(..., gt=0)
    id_producto: int = Field(..., gt=0)
    cantidad: int = Field(..., ge=0)
    fecha: Optional[date] = None

class PreregistroMinoristaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_minorista: int
    id_producto: int
    cantidad: int
    aumento: int
    fecha: date

class PreregistroMinoristaListResponse(BaseResponse):
    data: List[PreregistroMinoristaResponse]
    total: int

class EntregaItem(BaseModel):
    id_producto: int = Field(..., gt=0)
    cantidad: int = Field(..., gt=0)

class EntregaMinoristaRequest(BaseModel):
    id_minorista: int = Field(..., gt=0)
    items: List[EntregaItem] = Field(..., min_length=1)
    fecha: Optional[date] = None
