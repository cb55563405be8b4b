# tiendapos/core/exceptions.py
"""
Taxonomía de errores del núcleo contable.

Cada error es un HTTPException con un mensaje legible (``detail``) y un
``error_code`` estable para clasificación interna:

- ValidationError: entrada inválida (datos de crédito faltantes, cantidades)
- NotFoundError: entidad inexistente
- ConflictError: duplicados, caja ya abierta, venta ya anulada
- InsufficientStockError: cantidad solicitada > disponible
- StaleOperationError: operación fuera de la ventana permitida
- DependencyFailureError: falló una operación contra la base de datos
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class TiendaPOSError(HTTPException):
    """Error base con código de clasificación"""
    error_code = "error"

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        extra: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.extra = extra or {}


class ValidationError(TiendaPOSError):
    error_code = "validation_error"

    def __init__(self, detail: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(detail, status.HTTP_400_BAD_REQUEST, extra)


class NotFoundError(TiendaPOSError):
    error_code = "not_found"

    def __init__(self, detail: str = "Recurso no encontrado"):
        super().__init__(detail, status.HTTP_404_NOT_FOUND)


class ConflictError(TiendaPOSError):
    error_code = "conflict"

    def __init__(self, detail: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(detail, status.HTTP_409_CONFLICT, extra)


class AlreadyVoidedError(ConflictError):
    error_code = "already_voided"

    def __init__(self, detail: str = "La venta ya está anulada"):
        super().__init__(detail)


class AlreadyOpenError(ConflictError):
    error_code = "already_open"


class NotOpenError(ConflictError):
    error_code = "not_open"


class InsufficientStockError(TiendaPOSError):
    error_code = "insufficient_stock"

    def __init__(self, producto: str, disponible: int, solicitado: int):
        self.producto = producto
        self.disponible = disponible
        self.solicitado = solicitado
        super().__init__(
            f'Stock insuficiente para "{producto}". '
            f"Stock disponible: {disponible}, solicitado: {solicitado}",
            status.HTTP_409_CONFLICT,
            {"producto": producto, "disponible": disponible, "solicitado": solicitado}
        )


class StaleOperationError(TiendaPOSError):
    error_code = "stale_operation"

    def __init__(self, detail: str):
        super().__init__(detail, status.HTTP_409_CONFLICT)


class DependencyFailureError(TiendaPOSError):
    error_code = "dependency_failure"

    def __init__(self, detail: str):
        super().__init__(detail, status.HTTP_500_INTERNAL_SERVER_ERROR)


class DetailInsertFailedError(DependencyFailureError):
    error_code = "detail_insert_failed"


class MovementInsertFailedError(DependencyFailureError):
    error_code = "movement_insert_failed"
