from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field
from enum import Enum

from app.modules.business.schemas import InventoryMode

# ===== ENUMS =====

class TransferStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    RECEIVED = "received"
    CANCELLED = "cancelled"

# ===== REQUEST SCHEMAS =====

class TransferItemCreate(BaseModel):
    """Línea de producto a transferir"""
    product_id: str = Field(..., min_length=1, description="ID del producto")
    quantity: Decimal = Field(..., gt=0, max_digits=14, decimal_places=3, description="Cantidad a transferir")

class StockTransferCreate(BaseModel):
    """Schema para crear una transferencia en borrador"""
    origin_branch_id: str = Field(..., min_length=1, description="Sucursal origen")
    destination_branch_id: str = Field(..., min_length=1, description="Sucursal destino")
    items: List[TransferItemCreate] = Field(default_factory=list, description="Productos y cantidades")
    comment: Optional[str] = Field(None, max_length=500, description="Comentarios")

class TransferCancellation(BaseModel):
    """Schema para cancelación administrativa"""
    reason: Optional[str] = Field(None, max_length=300)

# ===== RESPONSE SCHEMAS =====

class TransferItemResponse(BaseModel):
    product_id: str
    quantity: Decimal

    class Config:
        from_attributes = True

class StockTransferResponse(BaseModel):
    """Documento completo de transferencia"""
    id: str
    business_id: str
    origin_scope: str
    destination_scope: str
    status: TransferStatus
    items: List[TransferItemResponse]
    comment: Optional[str] = None
    inventory_mode: Optional[InventoryMode] = None
    cancel_reason: Optional[str] = None

    # Timestamps
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    # Acciones disponibles según el estado
    can_edit: bool = False
    can_confirm: bool = False
    can_receive: bool = False
    can_delete: bool = False
    can_cancel: bool = False

    # Aviso no bloqueante (ej. auto-confirmación fallida)
    warning: Optional[str] = None

    class Config:
        from_attributes = True

class TransferActionResult(BaseModel):
    """Resultado de una transición del ciclo de vida"""
    success: bool = True
    message: str
    transfer: StockTransferResponse
    inventory_updated: bool = False

class AvailabilityResponse(BaseModel):
    """Stock disponible (solo informativo, no autoritativo)"""
    scope: str
    product_id: str
    inventory_mode: InventoryMode
    quantity: Optional[Decimal] = None
    known: bool = False

# ===== SCHEMAS PARA FILTROS =====

class TransferFilters(BaseModel):
    """Filtros para búsqueda de transferencias"""
    status: Optional[TransferStatus] = None
    origin_branch_id: Optional[str] = None
    destination_branch_id: Optional[str] = None
