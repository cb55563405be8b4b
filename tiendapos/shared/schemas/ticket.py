# tiendapos/shared/schemas/ticket.py
"""
Datos de ticket como unión etiquetada.

Cada línea declara su origen en ``tipo``:
- linea_venta: detalle persistido de una venta
- linea_carrito: ítem de carrito aún no registrado
- linea_distribuidor: asiento de venta de un mayorista/minorista
"""

from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union
from decimal import Decimal
from datetime import date

class LineaVenta(BaseModel):
    tipo: Literal["linea_venta"] = "linea_venta"
    id_producto: int
    producto: str
    cantidad: int
    precio_unitario: Decimal
    subtotal: Decimal

class LineaCarrito(BaseModel):
    tipo: Literal["linea_carrito"] = "linea_carrito"
    id_producto: int
    producto: str
    cantidad: int
    precio_unitario: Decimal
    subtotal: Decimal

class LineaDistribuidor(BaseModel):
    tipo: Literal["linea_distribuidor"] = "linea_distribuidor"
    id_producto: int
    producto: str
    cantidad_vendida: int
    cantidad_aumento: int
    precio: Decimal
    total: Decimal

LineaTicket = Annotated[
    Union[LineaVenta, LineaCarrito, LineaDistribuidor],
    Field(discriminator="tipo")
]

class TicketData(BaseModel):
    """Valores numéricos que alimentan la impresión del ticket"""
    titulo: str
    referencia: Optional[int] = None
    fecha: date
    hora: str
    lineas: List[LineaTicket]
    total: Decimal
    metodo_pago: Optional[str] = None
    cliente: Optional[str] = None
    vendedor: Optional[str] = None
