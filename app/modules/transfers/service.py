import logging
from collections import OrderedDict
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    InsufficientStock, InvalidStateTransition, NotFound, ValidationError
)
from app.modules.business.repository import BusinessRepository
from app.modules.business.schemas import BusinessSettingsInfo, InventoryMode
from app.modules.transfers.inventory import InventoryAccessor
from app.modules.transfers.repository import TransferRepository
from app.modules.transfers.schemas import (
    StockTransferCreate, StockTransferResponse, TransferActionResult,
    TransferItemCreate, TransferItemResponse, TransferStatus, AvailabilityResponse
)
from app.modules.transfers.validator import TransferValidator, can_transition, DELETED
from app.shared.database.models import StockTransfer

logger = logging.getLogger(__name__)


def build_transfer_response(transfer: StockTransfer,
                            warning: Optional[str] = None) -> StockTransferResponse:
    """Documento + acciones disponibles según el estado actual"""
    status = TransferStatus(transfer.status)
    is_draft = status == TransferStatus.DRAFT

    return StockTransferResponse(
        id=transfer.id,
        business_id=transfer.business_id,
        origin_scope=transfer.origin_scope,
        destination_scope=transfer.destination_scope,
        status=status,
        items=[TransferItemResponse.model_validate(item) for item in transfer.items],
        comment=transfer.comment,
        inventory_mode=transfer.inventory_mode,
        cancel_reason=transfer.cancel_reason,
        created_at=transfer.created_at,
        confirmed_at=transfer.confirmed_at,
        received_at=transfer.received_at,
        cancelled_at=transfer.cancelled_at,
        can_edit=is_draft,
        can_confirm=is_draft and bool(transfer.items),
        can_receive=can_transition(status, TransferStatus.RECEIVED),
        can_delete=can_transition(status, DELETED),
        can_cancel=can_transition(status, TransferStatus.CANCELLED),
        warning=warning
    )


def merge_items(items: List[TransferItemCreate]) -> List[TransferItemCreate]:
    """Un producto repetido se suma a su primera línea, nunca crea otra"""
    merged: "OrderedDict[str, Decimal]" = OrderedDict()
    for item in items:
        merged[item.product_id] = merged.get(item.product_id, Decimal(0)) + item.quantity
    return [TransferItemCreate(product_id=pid, quantity=qty) for pid, qty in merged.items()]


class TransferService:
    """
    Ciclo de vida de las transferencias entre sucursales.

    draft --confirm--> confirmed --receive--> received
    draft --delete--> (eliminada)
    draft/confirmed --cancel--> cancelled

    Cada transición es un único intento atómico: el CAS de estado y los
    movimientos de inventario van en la misma transacción. Si algo falla
    se hace rollback completo y el documento queda como estaba.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = TransferRepository(db)
        self.business_repository = BusinessRepository(db)

    # ===== CONTEXTO =====

    def _context(self, business_id: str) -> Tuple[BusinessSettingsInfo, TransferValidator, InventoryAccessor]:
        settings = self.business_repository.get_settings(business_id)
        branch_ids = [b.id for b in self.business_repository.list_branches(business_id)]
        validator = TransferValidator(settings, branch_ids)
        accessor = InventoryAccessor(self.db, business_id, settings.inventory_mode)
        return settings, validator, accessor

    def _get_transfer_or_404(self, business_id: str, transfer_id: str) -> StockTransfer:
        transfer = self.repository.get_transfer_by_id(business_id, transfer_id)
        if not transfer:
            raise NotFound("Transferencia no encontrada", transfer_id=transfer_id)
        return transfer

    def _require_draft(self, transfer: StockTransfer, action: str) -> None:
        if transfer.status != TransferStatus.DRAFT.value:
            raise InvalidStateTransition(
                f"Solo se puede {action} una transferencia en borrador. Estado actual: {transfer.status}",
                current_status=transfer.status
            )

    def _resolve_lost_race(self, business_id: str, transfer_id: str,
                           target: TransferStatus, message: str) -> TransferActionResult:
        """
        El CAS no aplicó. Si otro llamador ya dejó el documento en el estado
        pedido, el resultado es éxito idempotente; si no, la transición es
        inválida.
        """
        current = self.repository.get_status(transfer_id)
        if current is None:
            raise NotFound("Transferencia no encontrada", transfer_id=transfer_id)

        transfer = self._get_transfer_or_404(business_id, transfer_id)
        if current == target.value:
            logger.info(f"Transferencia {transfer_id} ya estaba en '{current}' (carrera resuelta)")
            return TransferActionResult(
                message=message,
                transfer=build_transfer_response(transfer)
            )
        raise InvalidStateTransition(
            f"No se puede pasar de '{current}' a '{target.value}'",
            current_status=current,
            target_status=target.value
        )

    # ===== BORRADORES =====

    def create_draft(self, business_id: str, data: StockTransferCreate) -> StockTransferResponse:
        """Crear transferencia en borrador (y auto-confirmar si el negocio lo pide)"""
        settings, validator, accessor = self._context(business_id)

        items = merge_items(data.items)
        validator.ensure_enabled()
        validator.validate_scopes(data.origin_branch_id, data.destination_branch_id)
        validator.validate_items(items)
        for item in items:
            accessor.ensure_product(item.product_id)

        transfer = self.repository.create_transfer(
            {
                "business_id": business_id,
                "origin_scope": data.origin_branch_id,
                "destination_scope": data.destination_branch_id,
                "comment": data.comment
            },
            [{"product_id": i.product_id, "quantity": i.quantity} for i in items]
        )
        logger.info(
            f"📦 Transferencia {transfer.id} creada: {transfer.origin_scope} -> "
            f"{transfer.destination_scope} ({len(items)} productos)"
        )

        warning = None
        if settings.transfer_auto_confirm:
            try:
                self.confirm(business_id, transfer.id)
            except InsufficientStock as e:
                warning = f"No se pudo confirmar automáticamente: {e.message}"
            transfer = self._get_transfer_or_404(business_id, transfer.id)

        return build_transfer_response(transfer, warning=warning)

    def add_item(self, business_id: str, transfer_id: str,
                 item: TransferItemCreate) -> StockTransferResponse:
        """Agregar producto al borrador; si ya existe se suma la cantidad"""
        transfer = self._get_transfer_or_404(business_id, transfer_id)
        self._require_draft(transfer, "editar")

        _, validator, accessor = self._context(business_id)
        validator.ensure_enabled()
        validator.validate_items([item])
        accessor.ensure_product(item.product_id)

        try:
            if not self.repository.lock_draft(transfer_id):
                self.db.rollback()
                raise InvalidStateTransition(
                    "La transferencia dejó de estar en borrador",
                    current_status=self.repository.get_status(transfer_id)
                )
            self.repository.add_or_merge_item(transfer_id, item.product_id, item.quantity)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        return build_transfer_response(self._get_transfer_or_404(business_id, transfer_id))

    def remove_item(self, business_id: str, transfer_id: str, product_id: str) -> StockTransferResponse:
        """Quitar un producto del borrador"""
        transfer = self._get_transfer_or_404(business_id, transfer_id)
        self._require_draft(transfer, "editar")

        try:
            if not self.repository.lock_draft(transfer_id):
                self.db.rollback()
                raise InvalidStateTransition(
                    "La transferencia dejó de estar en borrador",
                    current_status=self.repository.get_status(transfer_id)
                )
            if not self.repository.remove_item(transfer_id, product_id):
                self.db.rollback()
                raise NotFound("El producto no está en la transferencia", product_id=product_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        return build_transfer_response(self._get_transfer_or_404(business_id, transfer_id))

    def delete(self, business_id: str, transfer_id: str) -> dict:
        """Eliminar borrador (sin efecto sobre inventario)"""
        transfer = self._get_transfer_or_404(business_id, transfer_id)
        _, validator, _ = self._context(business_id)
        validator.validate_transition(transfer, DELETED)

        try:
            if not self.repository.delete_draft(transfer_id):
                self.db.rollback()
                current = self.repository.get_status(transfer_id)
                if current is None:
                    raise NotFound("Transferencia no encontrada", transfer_id=transfer_id)
                raise InvalidStateTransition(
                    f"Solo se puede eliminar una transferencia en borrador. Estado actual: {current}",
                    current_status=current
                )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        logger.info(f"🗑️ Transferencia {transfer_id} eliminada")
        return {"success": True, "message": "Transferencia eliminada", "transfer_id": transfer_id}

    # ===== TRANSICIONES =====

    def confirm(self, business_id: str, transfer_id: str) -> TransferActionResult:
        """
        Confirmar: descuenta el stock de origen (modo por sucursal) y pasa a
        'confirmed'. Todo o nada sobre el conjunto de líneas.
        """
        transfer = self._get_transfer_or_404(business_id, transfer_id)

        if transfer.status == TransferStatus.CONFIRMED.value:
            return TransferActionResult(
                message="La transferencia ya estaba confirmada",
                transfer=build_transfer_response(transfer)
            )

        settings, validator, accessor = self._context(business_id)
        validator.validate_transition(transfer, TransferStatus.CONFIRMED)
        validator.validate_draft(transfer)

        mode = InventoryMode(settings.inventory_mode)
        moves_stock = mode == InventoryMode.PER_BRANCH
        origin = accessor.scope_for(transfer.origin_scope)

        try:
            if not self.repository.compare_and_set_status(
                transfer_id, TransferStatus.DRAFT, TransferStatus.CONFIRMED,
                inventory_mode=mode.value
            ):
                self.db.rollback()
                return self._resolve_lost_race(
                    business_id, transfer_id, TransferStatus.CONFIRMED,
                    "La transferencia ya estaba confirmada"
                )

            # Con la fila tomada, las líneas ya no pueden cambiar
            items = self.repository.get_item_quantities(transfer_id)
            if not items:
                self.db.rollback()
                raise ValidationError("Agrega al menos un producto")

            if moves_stock:
                for product_id, quantity in items:
                    if not self.repository.atomic_decrement(business_id, origin, product_id, quantity):
                        self.db.rollback()
                        available = accessor.available(transfer.origin_scope, product_id)
                        logger.warning(
                            f"⚠️ Stock insuficiente en {origin} para {product_id}: "
                            f"pedido {quantity}, disponible {available}"
                        )
                        raise InsufficientStock(
                            f"Stock insuficiente para el producto {product_id}",
                            product_id=product_id,
                            requested=quantity,
                            available=available if available is not None else Decimal(0)
                        )

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        logger.info(f"✅ Transferencia {transfer_id} confirmada ({mode.value})")
        transfer = self._get_transfer_or_404(business_id, transfer_id)
        return TransferActionResult(
            message="Transferencia confirmada",
            transfer=build_transfer_response(transfer),
            inventory_updated=moves_stock
        )

    def receive(self, business_id: str, transfer_id: str) -> TransferActionResult:
        """Recibir: suma el stock en destino (modo por sucursal) y pasa a 'received'"""
        transfer = self._get_transfer_or_404(business_id, transfer_id)

        if transfer.status == TransferStatus.RECEIVED.value:
            return TransferActionResult(
                message="La transferencia ya estaba recibida",
                transfer=build_transfer_response(transfer)
            )

        _, validator, _ = self._context(business_id)
        validator.validate_transition(transfer, TransferStatus.RECEIVED)

        # Se respeta el modo con el que se confirmó, no el vigente
        mode = InventoryMode(transfer.inventory_mode or InventoryMode.PER_BRANCH.value)
        moves_stock = mode == InventoryMode.PER_BRANCH
        accessor = InventoryAccessor(self.db, business_id, mode)
        destination = accessor.scope_for(transfer.destination_scope)

        try:
            if not self.repository.compare_and_set_status(
                transfer_id, TransferStatus.CONFIRMED, TransferStatus.RECEIVED
            ):
                self.db.rollback()
                return self._resolve_lost_race(
                    business_id, transfer_id, TransferStatus.RECEIVED,
                    "La transferencia ya estaba recibida"
                )

            if moves_stock:
                for product_id, quantity in self.repository.get_item_quantities(transfer_id):
                    self.repository.atomic_increment(business_id, destination, product_id, quantity)

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        logger.info(f"✅ Transferencia {transfer_id} recibida en {transfer.destination_scope}")
        transfer = self._get_transfer_or_404(business_id, transfer_id)
        return TransferActionResult(
            message="Transferencia marcada como recibida",
            transfer=build_transfer_response(transfer),
            inventory_updated=moves_stock
        )

    def cancel(self, business_id: str, transfer_id: str,
               reason: Optional[str] = None) -> TransferActionResult:
        """
        Cancelación administrativa desde 'draft' o 'confirmed'.

        Si ya estaba confirmada en modo por sucursal, las cantidades vuelven
        al origen en la misma transacción.
        """
        transfer = self._get_transfer_or_404(business_id, transfer_id)

        if transfer.status == TransferStatus.CANCELLED.value:
            return TransferActionResult(
                message="La transferencia ya estaba cancelada",
                transfer=build_transfer_response(transfer)
            )

        _, validator, _ = self._context(business_id)
        validator.validate_transition(transfer, TransferStatus.CANCELLED)

        expected = TransferStatus(transfer.status)
        restores_stock = (
            expected == TransferStatus.CONFIRMED
            and transfer.inventory_mode == InventoryMode.PER_BRANCH.value
        )

        try:
            if not self.repository.compare_and_set_status(
                transfer_id, expected, TransferStatus.CANCELLED, cancel_reason=reason
            ):
                self.db.rollback()
                return self._resolve_lost_race(
                    business_id, transfer_id, TransferStatus.CANCELLED,
                    "La transferencia ya estaba cancelada"
                )

            if restores_stock:
                for product_id, quantity in self.repository.get_item_quantities(transfer_id):
                    self.repository.atomic_increment(business_id, transfer.origin_scope, product_id, quantity)

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        logger.info(f"🛑 Transferencia {transfer_id} cancelada desde '{expected.value}'")
        transfer = self._get_transfer_or_404(business_id, transfer_id)
        return TransferActionResult(
            message="Transferencia cancelada",
            transfer=build_transfer_response(transfer),
            inventory_updated=restores_stock
        )

    # ===== CONSULTAS =====

    def get_transfer(self, business_id: str, transfer_id: str) -> StockTransferResponse:
        return build_transfer_response(self._get_transfer_or_404(business_id, transfer_id))

    def get_availability(self, business_id: str, branch_id: Optional[str],
                         product_id: str) -> AvailabilityResponse:
        """Stock informativo para mostrar en pantalla y advertir antes de confirmar"""
        settings, validator, accessor = self._context(business_id)

        if accessor.mode == InventoryMode.PER_BRANCH:
            if not branch_id:
                raise ValidationError("Debes indicar la sucursal en modo por sucursal")
            if branch_id not in validator.branch_ids:
                raise ValidationError(f"Sucursal {branch_id} no pertenece al negocio", branch_id=branch_id)

        quantity = accessor.available(branch_id, product_id)
        return AvailabilityResponse(
            scope=accessor.scope_for(branch_id),
            product_id=product_id,
            inventory_mode=accessor.mode,
            quantity=quantity,
            known=quantity is not None
        )
