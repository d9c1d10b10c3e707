"""
Errores de dominio del sistema de transferencias.

Todos heredan de HTTPException para que los servicios puedan lanzarlos
directamente y FastAPI los convierta en respuestas. El `detail` siempre
lleva un `code` estable que los clientes usan para distinguir el error.
"""

from typing import Any, Dict
from fastapi import HTTPException, status


class TransferError(HTTPException):
    """Base de los errores de transferencias"""

    code = "transfer_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        detail: Dict[str, Any] = {"code": self.code, "message": message}
        detail.update(extra)
        super().__init__(status_code=self.http_status, detail=detail)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(TransferError):
    """Solicitud mal formada o regla de negocio incumplida"""
    code = "validation_error"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidStateTransition(TransferError):
    code = "invalid_state_transition"
    http_status = status.HTTP_409_CONFLICT


class InsufficientStock(TransferError):
    """La sucursal origen no tiene cantidad suficiente al confirmar"""
    code = "insufficient_stock"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message: str, product_id: str, requested: Any, available: Any = None):
        self.product_id = product_id
        super().__init__(
            message,
            product_id=product_id,
            requested=str(requested),
            available=str(available) if available is not None else None
        )


class UnknownProduct(TransferError):
    code = "unknown_product"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Producto {product_id} no existe en el catálogo", product_id=product_id)


class NotFound(TransferError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class ConcurrencyConflict(TransferError):
    # Reservado: hoy las carreras se resuelven como éxito idempotente
    code = "concurrency_conflict"
    http_status = status.HTTP_409_CONFLICT
