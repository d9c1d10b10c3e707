from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Dict, Any, Tuple
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import and_, desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.shared.database.models import StockTransfer, StockTransferItem, InventoryRecord, QUANTITY_SCALE
from app.modules.transfers.schemas import TransferFilters, TransferStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def at_scale(expression):
    """
    Redondea en la base el resultado de una suma o resta de cantidades.

    SQLite guarda Numeric como REAL; sin redondeo 0.3 - 0.1 - 0.1 queda por
    debajo de 0.1 y el siguiente descuento de 0.1 se rechaza.
    """
    return func.round(expression, QUANTITY_SCALE)


class TransferRepository:
    """
    Almacén de documentos de transferencia y de las operaciones atómicas
    sobre inventario.

    Los métodos de escritura atómica (decrementos, incrementos, CAS de
    estado) no hacen commit: el servicio agrupa varios en una sola
    transacción y decide commit o rollback.
    """

    def __init__(self, db: Session):
        self.db = db

    # ===== CRUD BÁSICO =====

    def create_transfer(self, transfer_data: dict, items: List[Dict[str, Any]]) -> StockTransfer:
        """Crear transferencia en borrador con sus líneas"""
        try:
            transfer = StockTransfer(
                **transfer_data,
                status=TransferStatus.DRAFT.value,
                created_at=utcnow()
            )
            for position, item in enumerate(items):
                transfer.items.append(StockTransferItem(
                    product_id=item["product_id"],
                    quantity=item["quantity"],
                    position=position
                ))
            self.db.add(transfer)
            self.db.commit()
            self.db.refresh(transfer)
            return transfer
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_transfer_by_id(self, business_id: str, transfer_id: str) -> Optional[StockTransfer]:
        """Obtener transferencia del negocio con sus líneas"""
        return self.db.query(StockTransfer).options(
            selectinload(StockTransfer.items)
        ).filter(
            and_(
                StockTransfer.id == transfer_id,
                StockTransfer.business_id == business_id
            )
        ).first()

    def get_status(self, transfer_id: str) -> Optional[str]:
        """Estado actual leído directo de la base (sin caché de sesión)"""
        row = self.db.query(StockTransfer.status).filter(
            StockTransfer.id == transfer_id
        ).first()
        return row.status if row else None

    def get_item_quantities(self, transfer_id: str) -> List[Tuple[str, Decimal]]:
        """Líneas leídas directo de la base, en orden de carga"""
        rows = self.db.query(
            StockTransferItem.product_id,
            StockTransferItem.quantity
        ).filter(
            StockTransferItem.transfer_id == transfer_id
        ).order_by(StockTransferItem.position).all()
        return [(row.product_id, Decimal(row.quantity)) for row in rows]

    # ===== MUTACIÓN DE BORRADORES =====

    def lock_draft(self, transfer_id: str) -> bool:
        """
        Toma el documento para edición solo si sigue en borrador.

        El UPDATE condicional bloquea la fila hasta el fin de la transacción,
        así un confirm concurrente espera a que termine la edición.
        """
        rows_updated = self.db.query(StockTransfer).filter(
            and_(
                StockTransfer.id == transfer_id,
                StockTransfer.status == TransferStatus.DRAFT.value
            )
        ).update({StockTransfer.updated_at: utcnow()}, synchronize_session=False)
        return rows_updated > 0

    def add_or_merge_item(self, transfer_id: str, product_id: str, quantity: Decimal) -> None:
        """Suma la cantidad si el producto ya está; si no, agrega una línea"""
        rows_updated = self.db.query(StockTransferItem).filter(
            and_(
                StockTransferItem.transfer_id == transfer_id,
                StockTransferItem.product_id == product_id
            )
        ).update(
            {StockTransferItem.quantity: at_scale(StockTransferItem.quantity + quantity)},
            synchronize_session=False
        )
        if rows_updated:
            return

        next_position = self.db.query(
            func.coalesce(func.max(StockTransferItem.position), -1) + 1
        ).filter(StockTransferItem.transfer_id == transfer_id).scalar()

        self.db.add(StockTransferItem(
            transfer_id=transfer_id,
            product_id=product_id,
            quantity=quantity,
            position=next_position
        ))
        self.db.flush()

    def remove_item(self, transfer_id: str, product_id: str) -> bool:
        rows_deleted = self.db.query(StockTransferItem).filter(
            and_(
                StockTransferItem.transfer_id == transfer_id,
                StockTransferItem.product_id == product_id
            )
        ).delete(synchronize_session=False)
        return rows_deleted > 0

    def delete_draft(self, transfer_id: str) -> bool:
        """Elimina el documento solo si sigue en borrador"""
        if not self.lock_draft(transfer_id):
            return False
        self.db.query(StockTransferItem).filter(
            StockTransferItem.transfer_id == transfer_id
        ).delete(synchronize_session=False)
        self.db.query(StockTransfer).filter(
            StockTransfer.id == transfer_id
        ).delete(synchronize_session=False)
        return True

    # ===== TRANSICIONES DE ESTADO =====

    def compare_and_set_status(self, transfer_id: str, expected: TransferStatus,
                               new_status: TransferStatus, **kwargs) -> bool:
        """
        CAS del estado: solo escribe si el estado actual es `expected`.

        Los timestamps se fijan aquí, una única vez, en la transición.
        """
        now = utcnow()
        update_data = {"status": new_status.value, "updated_at": now}

        if new_status == TransferStatus.CONFIRMED:
            update_data["confirmed_at"] = now
        elif new_status == TransferStatus.RECEIVED:
            update_data["received_at"] = now
        elif new_status == TransferStatus.CANCELLED:
            update_data["cancelled_at"] = now

        update_data.update(kwargs)

        rows_updated = self.db.query(StockTransfer).filter(
            and_(
                StockTransfer.id == transfer_id,
                StockTransfer.status == expected.value
            )
        ).update(update_data, synchronize_session=False)
        return rows_updated > 0

    # ===== INVENTARIO =====

    def _inventory_query(self, business_id: str, scope: str, product_id: str):
        return self.db.query(InventoryRecord).filter(
            and_(
                InventoryRecord.business_id == business_id,
                InventoryRecord.scope == scope,
                InventoryRecord.product_id == product_id
            )
        )

    def atomic_decrement(self, business_id: str, scope: str, product_id: str,
                         quantity: Decimal) -> bool:
        """
        Descuenta `quantity` solo si hay stock suficiente.

        Un único UPDATE condicional: la base serializa a los llamadores sobre
        la misma fila, y ninguno puede dejar la cantidad negativa. Sin
        registro de stock se considera cantidad cero.
        """
        rows_updated = self._inventory_query(business_id, scope, product_id).filter(
            InventoryRecord.available_quantity >= quantity
        ).update(
            {InventoryRecord.available_quantity: at_scale(InventoryRecord.available_quantity - quantity)},
            synchronize_session=False
        )
        return rows_updated > 0

    def atomic_increment(self, business_id: str, scope: str, product_id: str,
                         quantity: Decimal) -> None:
        """Suma `quantity`; crea el registro si el destino no tenía stock"""
        increment = {InventoryRecord.available_quantity: at_scale(InventoryRecord.available_quantity + quantity)}

        rows_updated = self._inventory_query(business_id, scope, product_id).update(
            increment, synchronize_session=False
        )
        if rows_updated:
            return

        try:
            with self.db.begin_nested():
                self.db.add(InventoryRecord(
                    business_id=business_id,
                    scope=scope,
                    product_id=product_id,
                    available_quantity=quantity
                ))
        except IntegrityError:
            # Otro request creó el registro entre el UPDATE y el INSERT
            self._inventory_query(business_id, scope, product_id).update(
                increment, synchronize_session=False
            )

    # ===== CONSULTAS =====

    def list_transfers(self, business_id: str, filters: TransferFilters,
                       limit: int) -> List[StockTransfer]:
        """Transferencias del negocio, más recientes primero"""
        query = self.db.query(StockTransfer).options(
            selectinload(StockTransfer.items)
        ).filter(StockTransfer.business_id == business_id)

        if filters.status:
            query = query.filter(StockTransfer.status == filters.status.value)
        if filters.origin_branch_id:
            query = query.filter(StockTransfer.origin_scope == filters.origin_branch_id)
        if filters.destination_branch_id:
            query = query.filter(StockTransfer.destination_scope == filters.destination_branch_id)

        return query.order_by(desc(StockTransfer.created_at)).limit(limit).all()

    def count_by_status(self, business_id: str) -> Dict[str, int]:
        """Cantidad de transferencias del negocio por estado"""
        status_counts = self.db.query(
            StockTransfer.status,
            func.count(StockTransfer.id).label('count')
        ).filter(
            StockTransfer.business_id == business_id
        ).group_by(StockTransfer.status).all()

        summary = {s.value: 0 for s in TransferStatus}
        for status, count in status_counts:
            if status in summary:
                summary[status] = count
        return summary
