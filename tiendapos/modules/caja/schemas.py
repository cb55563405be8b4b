# tiendapos/modules/caja/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict
from decimal import Decimal
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse

class CajaAbrirRequest(BaseModel):
    monto_inicial: Decimal = Field(..., ge=0, description="Efectivo inicial en caja")
    observacion: Optional[str] = Field(None, max_length=500)

class CajaCerrarRequest(BaseModel):
    efectivo_real: Decimal = Field(..., ge=0, description="Efectivo contado al cierre")
    observacion: Optional[str] = Field(None, max_length=500)

class CajaUpdateRequest(BaseModel):
    monto_inicial: Optional[Decimal] = Field(None, ge=0)
    efectivo_real: Optional[Decimal] = Field(None, ge=0)
    observacion: Optional[str] = Field(None, max_length=500)

class ArqueoCajaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    fecha: date
    hora_apertura: str
    hora_cierre: Optional[str] = None
    monto_inicial: Decimal
    total_ventas: Decimal
    efectivo_real: Optional[Decimal] = None
    diferencia: Decimal
    id_administrador: int
    observacion: Optional[str] = None
    estado: str
    created_at: datetime
    updated_at: datetime

class ArqueoCajaDetailResponse(BaseResponse):
    arqueo: Optional[ArqueoCajaResponse] = None

class ArqueoCajaListResponse(BaseResponse):
    data: List[ArqueoCajaResponse]
    total: int

class ResumenMetodosPagoResponse(BaseResponse):
    """Totales de ventas completadas del día por método de pago y cobros de crédito"""
    fecha: date
    totales: Dict[str, Decimal]
    cantidad_ventas: Dict[str, int]
    total_caja: Decimal
    cuotas_iniciales_credito: Decimal
    pagos_cuotas_credito: Decimal
    ingresos_credito: Decimal
    ingresos_totales: Decimal
