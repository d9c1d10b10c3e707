"""
Módulo de Transferencias de Stock

Maneja el movimiento de inventario entre sucursales de un negocio, bajo
dos modelos de inventario excluyentes: stock por sucursal o un único
stock centralizado.

Funcionalidades principales:
- Borradores editables (agregar/quitar productos)
- Confirmación con descuento atómico de stock en origen
- Recepción con ingreso de stock en destino
- Eliminación de borradores y cancelación administrativa
- Listado filtrado por estado, origen y destino

Garantías:
- Todo o nada al confirmar: nunca se aplica un descuento parcial
- Nunca stock negativo, aun con confirmaciones concurrentes
- Transiciones idempotentes una vez aplicadas
"""

from .router import router
from .service import TransferService
from .queries import TransferQueryService
from .repository import TransferRepository
from .inventory import InventoryAccessor
from .validator import TransferValidator
from .schemas import (
    StockTransferCreate,
    StockTransferResponse,
    TransferItemCreate,
    TransferStatus,
    TransferFilters
)

__all__ = [
    "router",
    "TransferService",
    "TransferQueryService",
    "TransferRepository",
    "InventoryAccessor",
    "TransferValidator",
    "StockTransferCreate",
    "StockTransferResponse",
    "TransferItemCreate",
    "TransferStatus",
    "TransferFilters"
]
