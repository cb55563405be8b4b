# tiendapos/modules/creditos/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import date, datetime

from tiendapos.shared.schemas.common import BaseResponse
from tiendapos.shared.database.models import EstadoCredito, MetodoPago

# ===== CÁLCULO =====

class CalculoCredito(BaseModel):
    """Resultado del recálculo en lectura de una venta a crédito"""
    id_venta: int
    meses_transcurridos: int
    monto_interes: Decimal
    total_con_interes: Decimal
    monto_pagado: Decimal
    saldo_pendiente: Decimal
    estado_credito: EstadoCredito
    interes_eximido: bool
    fecha_vencimiento: Optional[date] = None

class VentaCreditoResponse(BaseModel):
    """Venta a crédito con sus valores recalculados"""
    id: int
    fecha: date
    hora: str
    total: Decimal
    id_cliente: Optional[int] = None
    cliente_nombre: Optional[str] = None
    id_vendedor: int
    meses_credito: int
    cuota_inicial: Decimal
    tasa_interes: Decimal
    calculo: CalculoCredito

class VentaCreditoDetailResponse(BaseResponse):
    credito: VentaCreditoResponse

class VentaCreditoListResponse(BaseResponse):
    data: List[VentaCreditoResponse]
    total: int
    saldo_pendiente_total: Decimal

class EximirInteresRequest(BaseModel):
    interes_eximido: bool = Field(..., description="true para eximir el interés, false para volver a cobrarlo")

# ===== PAGOS DE CRÉDITO =====

class PagoCreditoCreate(BaseModel):
    """Pago de una cuota"""
    monto_pagado: Decimal = Field(..., gt=0, description="Monto pagado")
    numero_cuota: int = Field(..., ge=1, description="Número de cuota que se paga")
    metodo_pago: MetodoPago = Field(MetodoPago.EFECTIVO, description="Medio con que se pagó la cuota")
    fecha_pago: Optional[date] = Field(None, description="Fecha del pago (hoy si se omite)")
    observacion: Optional[str] = Field(None, max_length=500)

    @field_validator('metodo_pago')
    @classmethod
    def validate_metodo_pago(cls, v):
        if v == MetodoPago.CREDITO:
            raise ValueError('Una cuota no puede pagarse a crédito')
        return v

class PagoCreditoUpdate(BaseModel):
    monto_pagado: Optional[Decimal] = Field(None, gt=0)
    metodo_pago: Optional[MetodoPago] = None
    fecha_pago: Optional[date] = None
    observacion: Optional[str] = Field(None, max_length=500)

    @field_validator('metodo_pago')
    @classmethod
    def validate_metodo_pago(cls, v):
        if v == MetodoPago.CREDITO:
            raise ValueError('Una cuota no puede pagarse a crédito')
        return v

class PagoCreditoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    id_venta: int
    monto_pagado: Decimal
    fecha_pago: date
    metodo_pago: str
    numero_cuota: Optional[int] = None
    observacion: Optional[str] = None
    id_usuario: Optional[int] = None
    created_at: datetime

class PagoCreditoOperacionResponse(BaseResponse):
    pago: Optional[PagoCreditoResponse] = None
    calculo: CalculoCredito

class PagoCreditoListResponse(BaseResponse):
    data: List[PagoCreditoResponse]
    total: int
