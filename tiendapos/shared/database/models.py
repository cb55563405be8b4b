# tiendapos/shared/database/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Text,
    Numeric, ForeignKey, UniqueConstraint, CheckConstraint, JSON
)
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum

from tiendapos.config.database import Base


# =====================================================
# ESTADOS Y CATÁLOGOS
# =====================================================

class RolUsuario(str, Enum):
    ADMINISTRADOR = "administrador"
    VENDEDOR = "vendedor"
    MAYORISTA = "mayorista"
    MINORISTA = "minorista"


class EstadoProducto(str, Enum):
    ACTIVO = "activo"
    INACTIVO = "inactivo"


class MetodoPago(str, Enum):
    EFECTIVO = "efectivo"
    QR = "qr"
    TRANSFERENCIA = "transferencia"
    CREDITO = "credito"


class EstadoVenta(str, Enum):
    COMPLETADA = "completada"
    ANULADA = "anulada"


class EstadoCredito(str, Enum):
    PENDIENTE = "pendiente"
    PAGADO = "pagado"
    PARCIAL = "parcial"
    VENCIDO = "vencido"


class TipoMovimiento(str, Enum):
    ENTRADA = "entrada"
    SALIDA = "salida"


class MotivoMovimiento(str, Enum):
    VENTA = "venta"
    AJUSTE = "ajuste"
    COMPRA = "compra"
    DEVOLUCION = "devolucion"


class EstadoArqueo(str, Enum):
    ABIERTO = "abierto"
    CERRADO = "cerrado"


class EstadoPagoMayorista(str, Enum):
    PENDIENTE = "pendiente"
    VERIFICADO = "verificado"


class EstadoNotificacion(str, Enum):
    PENDIENTE = "pendiente"
    VISTA = "vista"
    RESUELTA = "resuelta"


class EstadoPedido(str, Enum):
    PENDIENTE = "pendiente"
    ENVIADO = "enviado"
    ENTREGADO = "entregado"
    CANCELADO = "cancelado"


# =====================================================
# MIXIN PARA TIMESTAMPS
# =====================================================
class TimestampMixin:
    """Timestamps locales capturados por la aplicación"""
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


# =====================================================
# USUARIOS Y CLIENTES
# =====================================================

class Usuario(Base):
    """Usuario del sistema (administrador, vendedor o distribuidor)"""
    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    nombre = Column(String(255), nullable=False)
    rol = Column(String(50), nullable=False, default=RolUsuario.VENDEDOR.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class Cliente(Base, TimestampMixin):
    """Cliente para ventas a crédito"""
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(255), nullable=False)
    ci_nit = Column(String(50), unique=True)
    telefono = Column(String(50))

    ventas = relationship("Venta", back_populates="cliente")


# =====================================================
# PRODUCTOS E INVENTARIO
# =====================================================

class Categoria(Base, TimestampMixin):
    """Categoría de productos (baja lógica vía estado)"""
    __tablename__ = "categorias"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(255), nullable=False, unique=True)
    descripcion = Column(Text)
    estado = Column(String(20), nullable=False, default=EstadoProducto.ACTIVO.value)

    productos = relationship("Producto", back_populates="categoria")

    @property
    def is_active(self) -> bool:
        return self.estado == EstadoProducto.ACTIVO.value


class Producto(Base, TimestampMixin):
    """Producto con stock cacheado (fuente de verdad: movimientos_inventario)"""
    __tablename__ = "productos"

    id = Column(Integer, primary_key=True, index=True)
    codigo = Column(String(100), nullable=False, unique=True, index=True)
    nombre = Column(String(255), nullable=False)
    descripcion = Column(Text)
    precio_unitario = Column(Numeric(10, 2), nullable=False, default=0)
    precio_mayor = Column(Numeric(10, 2))
    stock_actual = Column(Integer, nullable=False, default=0)
    stock_minimo = Column(Integer, nullable=False, default=0)
    id_categoria = Column(Integer, ForeignKey("categorias.id"), index=True)
    estado = Column(String(20), nullable=False, default=EstadoProducto.ACTIVO.value)

    __table_args__ = (
        CheckConstraint("stock_actual >= 0", name="productos_stock_no_negativo"),
    )

    movimientos = relationship("MovimientoInventario", back_populates="producto")
    categoria = relationship("Categoria", back_populates="productos")

    @property
    def is_active(self) -> bool:
        return self.estado == EstadoProducto.ACTIVO.value


class MovimientoInventario(Base):
    """Ledger de inventario (solo se agrega; las anulaciones se marcan)"""
    __tablename__ = "movimientos_inventario"

    id = Column(Integer, primary_key=True, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False, index=True)
    tipo_movimiento = Column(String(20), nullable=False)
    cantidad = Column(Integer, nullable=False)
    motivo = Column(String(20), nullable=False)
    fecha = Column(Date, nullable=False)
    id_usuario = Column(Integer, ForeignKey("usuarios.id"))
    id_venta = Column(Integer, ForeignKey("ventas.id"), index=True)
    observacion = Column(Text)

    # Anulación
    anulado = Column(Boolean, nullable=False, default=False)
    id_usuario_anulacion = Column(Integer, ForeignKey("usuarios.id"))
    motivo_anulacion = Column(Text)
    fecha_anulacion = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        CheckConstraint("cantidad > 0", name="movimientos_cantidad_positiva"),
    )

    producto = relationship("Producto", back_populates="movimientos")

    @property
    def cantidad_con_signo(self) -> int:
        if self.tipo_movimiento == TipoMovimiento.ENTRADA.value:
            return self.cantidad
        return -self.cantidad


# =====================================================
# VENTAS Y CRÉDITOS
# =====================================================

class Venta(Base, TimestampMixin):
    """Venta minorista; los campos de crédito solo existen si metodo_pago = credito"""
    __tablename__ = "ventas"

    id = Column(Integer, primary_key=True, index=True)
    fecha = Column(Date, nullable=False, index=True)
    hora = Column(String(5), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    metodo_pago = Column(String(20), nullable=False)
    id_cliente = Column(Integer, ForeignKey("clientes.id"))
    id_vendedor = Column(Integer, ForeignKey("usuarios.id"), nullable=False)
    estado = Column(String(20), nullable=False, default=EstadoVenta.COMPLETADA.value)

    # Crédito
    meses_credito = Column(Integer)
    fecha_vencimiento = Column(Date)
    cuota_inicial = Column(Numeric(10, 2))
    monto_pagado = Column(Numeric(10, 2))
    estado_credito = Column(String(20))
    tasa_interes = Column(Numeric(5, 2))
    monto_interes = Column(Numeric(10, 2))
    interes_eximido = Column(Boolean)
    total_con_interes = Column(Numeric(10, 2))

    cliente = relationship("Cliente", back_populates="ventas")
    vendedor = relationship("Usuario", foreign_keys=[id_vendedor])
    detalles = relationship("DetalleVenta", back_populates="venta", cascade="all, delete-orphan")
    pagos = relationship("PagoCredito", back_populates="venta", cascade="all, delete-orphan")

    @property
    def es_credito(self) -> bool:
        return self.metodo_pago == MetodoPago.CREDITO.value


class DetalleVenta(Base):
    """Línea de una venta"""
    __tablename__ = "detalle_venta"

    id = Column(Integer, primary_key=True, index=True)
    id_venta = Column(Integer, ForeignKey("ventas.id", ondelete="CASCADE"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False)
    precio_unitario = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        CheckConstraint("cantidad > 0", name="detalle_cantidad_positiva"),
        CheckConstraint("precio_unitario >= 0", name="detalle_precio_no_negativo"),
    )

    venta = relationship("Venta", back_populates="detalles")
    producto = relationship("Producto")


class PagoCredito(Base):
    """Pago de cuota de una venta a crédito"""
    __tablename__ = "pagos_credito"

    id = Column(Integer, primary_key=True, index=True)
    id_venta = Column(Integer, ForeignKey("ventas.id", ondelete="CASCADE"), nullable=False, index=True)
    monto_pagado = Column(Numeric(10, 2), nullable=False)
    fecha_pago = Column(Date, nullable=False)
    metodo_pago = Column(String(20), nullable=False)
    numero_cuota = Column(Integer)
    observacion = Column(Text)
    id_usuario = Column(Integer, ForeignKey("usuarios.id"))
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    venta = relationship("Venta", back_populates="pagos")


# =====================================================
# ARQUEO DE CAJA
# =====================================================

class ArqueoCaja(Base, TimestampMixin):
    """Sesión de caja: a lo sumo una abierta por fecha"""
    __tablename__ = "arqueos_caja"

    id = Column(Integer, primary_key=True, index=True)
    fecha = Column(Date, nullable=False, index=True)
    hora_apertura = Column(String(5), nullable=False)
    hora_cierre = Column(String(5))
    monto_inicial = Column(Numeric(10, 2), nullable=False, default=0)
    total_ventas = Column(Numeric(12, 2), nullable=False, default=0)
    efectivo_real = Column(Numeric(12, 2))
    diferencia = Column(Numeric(12, 2), nullable=False, default=0)
    id_administrador = Column(Integer, ForeignKey("usuarios.id"), nullable=False)
    observacion = Column(Text)
    estado = Column(String(20), nullable=False, default=EstadoArqueo.ABIERTO.value)

    administrador = relationship("Usuario")


# =====================================================
# DISTRIBUIDORES - MAYORISTAS
# =====================================================

class VentaMayorista(Base, TimestampMixin):
    """Asiento periódico de venta de un mayorista"""
    __tablename__ = "ventas_mayoristas"

    id = Column(Integer, primary_key=True, index=True)
    id_mayorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad_vendida = Column(Integer, nullable=False, default=0)
    cantidad_aumento = Column(Integer, nullable=False, default=0)
    precio_por_mayor = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    fecha = Column(Date, nullable=False, index=True)
    hora = Column(String(5), nullable=False)
    id_pedido = Column(Integer, ForeignKey("pedidos.id"), index=True)
    observaciones = Column(Text)

    mayorista = relationship("Usuario")
    producto = relationship("Producto")


class ArqueoMayorista(Base, TimestampMixin):
    """Conciliación de un mayorista para un período arbitrario"""
    __tablename__ = "arqueos_mayoristas"

    id = Column(Integer, primary_key=True, index=True)
    id_mayorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    fecha_inicio = Column(Date, nullable=False)
    fecha_fin = Column(Date, nullable=False)
    hora_apertura = Column(String(5))
    hora_cierre = Column(String(5))
    ventas_del_periodo = Column(Numeric(12, 2), nullable=False, default=0)
    saldos_iniciales = Column(JSON, nullable=False, default=list)
    saldos_restantes = Column(JSON, nullable=False, default=list)
    efectivo_recibido = Column(Numeric(12, 2), nullable=False, default=0)
    observaciones = Column(Text)
    estado = Column(String(20), nullable=False, default=EstadoArqueo.ABIERTO.value)

    mayorista = relationship("Usuario")


class PreregistroMayorista(Base, TimestampMixin):
    """Cupo preautorizado producto+cantidad de un mayorista para una fecha"""
    __tablename__ = "preregistros_mayorista"

    id = Column(Integer, primary_key=True, index=True)
    id_mayorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False, default=0)
    aumento = Column(Integer, nullable=False, default=0)
    fecha = Column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("id_mayorista", "id_producto", "fecha", name="preregistro_mayorista_unico"),
    )

    producto = relationship("Producto")


class SaldoRestanteMayorista(Base, TimestampMixin):
    """Saldo arrastrado de un producto al cerrar un arqueo mayorista"""
    __tablename__ = "saldos_restantes_mayoristas"

    id = Column(Integer, primary_key=True, index=True)
    id_arqueo = Column(Integer, ForeignKey("arqueos_mayoristas.id", ondelete="CASCADE"), nullable=False, index=True)
    id_mayorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad_restante = Column(Integer, nullable=False)
    fecha = Column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("cantidad_restante >= 0", name="saldo_restante_no_negativo"),
    )

    producto = relationship("Producto")


class PagoMayorista(Base, TimestampMixin):
    """Recepción de efectivo de una venta mayorista verificada por un administrador"""
    __tablename__ = "pagos_mayoristas"

    id = Column(Integer, primary_key=True, index=True)
    id_venta = Column(Integer, ForeignKey("ventas_mayoristas.id"), nullable=False, unique=True)
    id_mayorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    monto_esperado = Column(Numeric(12, 2), nullable=False)
    monto_recibido = Column(Numeric(12, 2), nullable=False, default=0)
    diferencia = Column(Numeric(12, 2), nullable=False, default=0)
    metodo_pago = Column(String(20), nullable=False)
    observaciones = Column(Text)
    id_administrador = Column(Integer, ForeignKey("usuarios.id"))
    fecha_pago = Column(Date, nullable=False)
    fecha_verificacion = Column(DateTime)
    estado = Column(String(20), nullable=False, default=EstadoPagoMayorista.PENDIENTE.value)

    venta = relationship("VentaMayorista")


# =====================================================
# DISTRIBUIDORES - MINORISTAS
# =====================================================

class VentaMinorista(Base, TimestampMixin):
    """Asiento diario de venta de un minorista"""
    __tablename__ = "ventas_minoristas"

    id = Column(Integer, primary_key=True, index=True)
    id_minorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad_vendida = Column(Integer, nullable=False, default=0)
    cantidad_aumento = Column(Integer, nullable=False, default=0)
    precio_unitario = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    fecha = Column(Date, nullable=False, index=True)
    hora = Column(String(5), nullable=False)
    id_pedido = Column(Integer, ForeignKey("pedidos.id"), index=True)
    observaciones = Column(Text)

    minorista = relationship("Usuario")
    producto = relationship("Producto")


class ArqueoMinorista(Base, TimestampMixin):
    """Conciliación diaria de un minorista"""
    __tablename__ = "arqueos_minoristas"

    id = Column(Integer, primary_key=True, index=True)
    id_minorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    fecha = Column(Date, nullable=False)
    hora_apertura = Column(String(5))
    hora_cierre = Column(String(5))
    ventas_del_periodo = Column(Numeric(12, 2), nullable=False, default=0)
    saldos_iniciales = Column(JSON, nullable=False, default=list)
    saldos_restantes = Column(JSON, nullable=False, default=list)
    efectivo_recibido = Column(Numeric(12, 2), nullable=False, default=0)
    observaciones = Column(Text)
    estado = Column(String(20), nullable=False, default=EstadoArqueo.ABIERTO.value)

    minorista = relationship("Usuario")


class PreregistroMinorista(Base, TimestampMixin):
    """Cupo preautorizado producto+cantidad de un minorista para una fecha"""
    __tablename__ = "preregistros_minorista"

    id = Column(Integer, primary_key=True, index=True)
    id_minorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False, default=0)
    aumento = Column(Integer, nullable=False, default=0)
    fecha = Column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("id_minorista", "id_producto", "fecha", name="preregistro_minorista_unico"),
    )

    producto = relationship("Producto")


# =====================================================
# NOTIFICACIONES DE ARQUEO
# =====================================================

class NotificacionArqueo(Base, TimestampMixin):
    """Alerta de días sin arqueo para un distribuidor (generada externamente)"""
    __tablename__ = "notificaciones_arqueo"

    id = Column(Integer, primary_key=True, index=True)
    id_mayorista = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    dias_sin_arqueo = Column(Integer, nullable=False)
    fecha_ultimo_arqueo = Column(Date)
    mensaje = Column(Text)
    estado = Column(String(20), nullable=False, default=EstadoNotificacion.PENDIENTE.value)

    mayorista = relationship("Usuario")


# =====================================================
# PEDIDOS DE DISTRIBUIDORES
# =====================================================

class Pedido(Base, TimestampMixin):
    """Pedido de reposición de un distribuidor (pendiente -> enviado -> entregado)"""
    __tablename__ = "pedidos"

    id = Column(Integer, primary_key=True, index=True)
    id_usuario = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    tipo_usuario = Column(String(50), nullable=False)
    estado = Column(String(20), nullable=False, default=EstadoPedido.PENDIENTE.value)
    fecha_pedido = Column(Date, nullable=False)
    fecha_entrega = Column(Date)
    observaciones = Column(Text)

    usuario = relationship("Usuario")
    detalles = relationship(
        "DetallePedido", back_populates="pedido", cascade="all, delete-orphan",
        order_by="DetallePedido.id"
    )


class DetallePedido(Base):
    """Línea producto+cantidad de un pedido"""
    __tablename__ = "detalles_pedido"

    id = Column(Integer, primary_key=True, index=True)
    id_pedido = Column(Integer, ForeignKey("pedidos.id"), nullable=False, index=True)
    id_producto = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("id_pedido", "id_producto", name="detalle_pedido_unico"),
        CheckConstraint("cantidad > 0", name="detalles_pedido_cantidad_positiva"),
    )

    pedido = relationship("Pedido", back_populates="detalles")
    producto = relationship("Producto")
