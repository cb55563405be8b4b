# tiendapos/modules/mayoristas/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse
from tiendapos.shared.database.models import MetodoPago

# ===== VENTAS MAYORISTAS =====

class VentaMayoristaCreate(BaseModel):
    """Asiento de venta de un mayorista: total = (vendida + aumento) x precio"""
    id_mayorista: int = Field(..., gt=0)
    id_producto: int = Field(..., gt=0)
    cantidad_vendida: int = Field(0, ge=0, description="Unidades vendidas")
    cantidad_aumento: int = Field(0, ge=0, description="Unidades de aumento (reposición)")
    precio_por_mayor: Optional[Decimal] = Field(
        None, ge=0, description="Precio por mayor (precio del producto si se omite)"
    )
    fecha: Optional[date] = Field(None, description="Fecha del asiento (hoy si se omite)")
    id_pedido: Optional[int] = None
    observaciones: Optional[str] = Field(None, max_length=1000)

class VentaMayoristaUpdate(BaseModel):
    cantidad_vendida: Optional[int] = Field(None, ge=0)
    cantidad_aumento: Optional[int] = Field(None, ge=0)
    precio_por_mayor: Optional[Decimal] = Field(None, ge=0)
    observaciones: Optional[str] = Field(None, max_length=1000)

class VentaMayoristaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_mayorista: int
    id_producto: int
    cantidad_vendida: int
    cantidad_aumento: int
    precio_por_mayor: Decimal
    total: Decimal
    fecha: date
    hora: str
    id_pedido: Optional[int] = None
    observaciones: Optional[str] = None
    created_at: datetime

class VentaMayoristaDetailResponse(BaseResponse):
    venta: VentaMayoristaResponse

class VentaMayoristaListResponse(BaseResponse):
    data: List[VentaMayoristaResponse]
    total: int
    monto_total: Decimal

class ResumenPeriodoResponse(BaseResponse):
    """Agregados de un mayorista entre dos fechas (inclusive)"""
    id_mayorista: int
    fecha_desde: date
    fecha_hasta: date
    cantidad_registros: int
    unidades_vendidas: int
    unidades_aumento: int
    monto_ventas: Decimal = Field(..., description="Σ cantidad_vendida x precio")
    monto_total: Decimal = Field(..., description="Σ total (incluye aumentos)")

# ===== ARQUEOS MAYORISTAS =====

class SaldoItem(BaseModel):
    id_producto: int = Field(..., gt=0)
    cantidad_restante: int = Field(..., ge=0)

class ArqueoMayoristaAbrirRequest(BaseModel):
    id_mayorista: int = Field(..., gt=0)
    fecha_inicio: Optional[date] = Field(None, description="Inicio del período (hoy si se omite)")
    observaciones: Optional[str] = Field(None, max_length=1000)

class ArqueoMayoristaCerrarRequest(BaseModel):
    saldos_restantes: List[SaldoItem] = Field(default_factory=list)
    efectivo_recibido: Decimal = Field(..., ge=0)
    fecha_fin: Optional[date] = Field(None, description="Fin del período (hoy si se omite)")
    observaciones: Optional[str] = Field(None, max_length=1000)

    @field_validator('saldos_restantes')
    @classmethod
    def validate_sin_duplicados(cls, v):
        ids = [s.id_producto for s in v]
        if len(ids) != len(set(ids)):
            raise ValueError('Un producto no puede aparecer dos veces en los saldos')
        return v

class ArqueoMayoristaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_mayorista: int
    fecha_inicio: date
    fecha_fin: date
    hora_apertura: Optional[str] = None
    hora_cierre: Optional[str] = None
    ventas_del_periodo: Decimal
    saldos_iniciales: List[SaldoItem] = []
    saldos_restantes: List[SaldoItem] = []
    efectivo_recibido: Decimal
    observaciones: Optional[str] = None
    estado: str

class ArqueoMayoristaDetailResponse(BaseResponse):
    arqueo: Optional[ArqueoMayoristaResponse] = None

class ArqueoMayoristaListResponse(BaseResponse):
    data: List[ArqueoMayoristaResponse]
    total: int

class SaldoRestanteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_arqueo: int
    id_mayorista: int
    id_producto: int
    cantidad_restante: int
    fecha: date

class SaldoRestanteListResponse(BaseResponse):
    data: List[SaldoRestanteResponse]
    total: int

# ===== PREREGISTROS =====

class PreregistroMayoristaCreate(BaseModel):
    id_mayorista: int = Field(..., gt=0)
    id_producto: int = Field(..., gt=0)
    cantidad: int = Field(..., ge=0)
    fecha: Optional[date] = None

class PreregistroMayoristaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_mayorista: int
    id_producto: int
    cantidad: int
    aumento: int
    fecha: date

class PreregistroMayoristaListResponse(BaseResponse):
    data: List[PreregistroMayoristaResponse]
    total: int

class EntregaItem(BaseModel):
    id_producto: int = Field(..., gt=0)
    cantidad: int = Field(..., gt=0)

class EntregaMayoristaRequest(BaseModel):
    """Entrega de mercadería contra los preregistros de una fecha"""
    id_mayorista: int = Field(..., gt=0)
    items: List[EntregaItem] = Field(..., min_length=1)
    fecha: Optional[date] = None

# ===== PAGOS MAYORISTAS =====

class PagoMayoristaCreate(BaseModel):
    id_venta: int = Field(..., gt=0, description="Venta mayorista que se paga")
    metodo_pago: MetodoPago = MetodoPago.EFECTIVO
    fecha_pago: Optional[date] = None
    observaciones: Optional[str] = Field(None, max_length=1000)

    @field_validator('metodo_pago')
    @classmethod
    def validate_metodo_pago(cls, v):
        if v == MetodoPago.CREDITO:
            raise ValueError('Un pago mayorista no puede ser a crédito')
        return v

class PagoMayoristaVerificarRequest(BaseModel):
    monto_recibido: Decimal = Field(..., ge=0)
    observaciones: Optional[str] = Field(None, max_length=1000)

class PagoMayoristaUpdate(BaseModel):
    monto_recibido: Decimal = Field(..., ge=0)
    observaciones: Optional[str] = Field(None, max_length=1000)

class PagoMayoristaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_venta: int
    id_mayorista: int
    monto_esperado: Decimal
    monto_recibido: Decimal
    diferencia: Decimal
    metodo_pago: str
    observaciones: Optional[str] = None
    id_administrador: Optional[int] = None
    fecha_pago: date
    fecha_verificacion: Optional[datetime] = None
    estado: str

class PagoMayoristaDetailResponse(BaseResponse):
    pago: PagoMayoristaResponse

class PagoMayoristaListResponse(BaseResponse):
    data: List[PagoMayoristaResponse]
    total: int
