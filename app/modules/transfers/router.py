from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.config.settings import settings
from app.modules.transfers.queries import TransferQueryService
from app.modules.transfers.service import TransferService
from app.modules.transfers.schemas import (
    StockTransferCreate, StockTransferResponse, TransferActionResult,
    TransferItemCreate, TransferCancellation, TransferFilters, TransferStatus,
    AvailabilityResponse
)

router = APIRouter(prefix="/businesses/{business_id}/stock-transfers", tags=["Stock Transfers"])

# ===== CONSULTAS =====

@router.get("", response_model=List[StockTransferResponse])
async def list_stock_transfers(
    business_id: str,
    status: Optional[TransferStatus] = Query(None, description="Filtrar por estado"),
    origin_branch_id: Optional[str] = Query(None, description="Filtrar por sucursal origen"),
    destination_branch_id: Optional[str] = Query(None, description="Filtrar por sucursal destino"),
    limit: int = Query(settings.transfer_list_default_limit, ge=1, le=settings.transfer_list_max_limit),
    db: Session = Depends(get_db)
):
    """
    Listar transferencias del negocio

    **Filtros disponibles:**
    - status: draft, confirmed, received, cancelled
    - origin_branch_id / destination_branch_id
    - limit: por defecto 50, máximo 200

    Ordenadas por fecha de creación, más recientes primero.
    """
    service = TransferQueryService(db)
    filters = TransferFilters(
        status=status,
        origin_branch_id=origin_branch_id,
        destination_branch_id=destination_branch_id
    )
    return service.list_transfers(business_id, filters, limit)


@router.get("/summary")
async def get_stock_transfer_summary(
    business_id: str,
    db: Session = Depends(get_db)
):
    """Cantidad de transferencias por estado"""
    service = TransferQueryService(db)
    return {"success": True, "summary": service.summary(business_id)}


@router.get("/availability", response_model=AvailabilityResponse)
async def get_product_availability(
    business_id: str,
    product_id: str = Query(..., description="ID del producto"),
    branch_id: Optional[str] = Query(None, description="Sucursal (ignorada en modo centralizado)"),
    db: Session = Depends(get_db)
):
    """
    Stock disponible de un producto

    **Solo informativo:** sirve para advertir al armar la transferencia.
    La verificación real ocurre al confirmar. `known=false` indica que no
    hay registro de stock (se trata como cero al confirmar).
    """
    service = TransferService(db)
    return service.get_availability(business_id, branch_id, product_id)


@router.get("/{transfer_id}", response_model=StockTransferResponse)
async def get_stock_transfer(
    business_id: str,
    transfer_id: str,
    db: Session = Depends(get_db)
):
    """Obtener detalle de una transferencia"""
    service = TransferService(db)
    return service.get_transfer(business_id, transfer_id)

# ===== BORRADORES =====

@router.post("", response_model=StockTransferResponse, status_code=201)
async def create_stock_transfer(
    business_id: str,
    transfer_data: StockTransferCreate,
    db: Session = Depends(get_db)
):
    """
    Crear transferencia en borrador

    **Validaciones:**
    - Transferencias habilitadas para el negocio
    - Origen y destino distintos y pertenecientes al negocio
    - Al menos un producto, cantidades mayores a 0
    - Productos repetidos se suman en una sola línea

    Si el negocio tiene auto-confirmación activa, se intenta confirmar
    inmediatamente; si falta stock queda en borrador con un aviso.
    """
    service = TransferService(db)
    return service.create_draft(business_id, transfer_data)


@router.post("/{transfer_id}/items", response_model=StockTransferResponse)
async def add_stock_transfer_item(
    business_id: str,
    transfer_id: str,
    item: TransferItemCreate,
    db: Session = Depends(get_db)
):
    """Agregar producto a un borrador (suma si ya estaba)"""
    service = TransferService(db)
    return service.add_item(business_id, transfer_id, item)


@router.delete("/{transfer_id}/items/{product_id}", response_model=StockTransferResponse)
async def remove_stock_transfer_item(
    business_id: str,
    transfer_id: str,
    product_id: str,
    db: Session = Depends(get_db)
):
    """Quitar producto de un borrador"""
    service = TransferService(db)
    return service.remove_item(business_id, transfer_id, product_id)


@router.delete("/{transfer_id}")
async def delete_stock_transfer(
    business_id: str,
    transfer_id: str,
    db: Session = Depends(get_db)
):
    """
    Eliminar transferencia

    **Restricciones:**
    - Solo borradores; confirmadas o recibidas nunca se eliminan
    - No afecta inventario
    """
    service = TransferService(db)
    return service.delete(business_id, transfer_id)

# ===== CICLO DE VIDA =====

@router.post("/{transfer_id}/confirm", response_model=TransferActionResult)
async def confirm_stock_transfer(
    business_id: str,
    transfer_id: str,
    db: Session = Depends(get_db)
):
    """
    Confirmar transferencia

    **Funcionalidad CRÍTICA:**
    - Modo por sucursal: descuenta el stock de la sucursal origen
    - Modo centralizado: solo cambia el estado (movimiento documental)
    - Todo o nada: si un producto no alcanza, no se descuenta ninguno

    **Errores:**
    - 409 insufficient_stock: queda en borrador, se indica el producto
    - 409 invalid_state_transition: no está en borrador

    Repetir la llamada sobre una transferencia ya confirmada es seguro.
    """
    service = TransferService(db)
    return service.confirm(business_id, transfer_id)


@router.post("/{transfer_id}/receive", response_model=TransferActionResult)
async def receive_stock_transfer(
    business_id: str,
    transfer_id: str,
    db: Session = Depends(get_db)
):
    """
    Marcar transferencia como recibida

    - Modo por sucursal: suma el stock en la sucursal destino
    - Solo desde 'confirmed'; repetir sobre una recibida es seguro
    """
    service = TransferService(db)
    return service.receive(business_id, transfer_id)


@router.post("/{transfer_id}/cancel", response_model=TransferActionResult)
async def cancel_stock_transfer(
    business_id: str,
    transfer_id: str,
    cancellation: Optional[TransferCancellation] = None,
    db: Session = Depends(get_db)
):
    """
    Cancelación administrativa

    - Desde 'draft' o 'confirmed'
    - Si estaba confirmada (modo por sucursal) el stock vuelve al origen
    """
    service = TransferService(db)
    reason = cancellation.reason if cancellation else None
    return service.cancel(business_id, transfer_id, reason)
