from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Optional

from app.core.exceptions import ValidationError, InvalidStateTransition
from app.modules.business.schemas import BusinessSettingsInfo
from app.modules.transfers.schemas import TransferStatus
from app.shared.database.models import QUANTITY_SCALE

# None representa la eliminación del borrador
DELETED = None

QUANTITY_STEP = Decimal(1).scaleb(-QUANTITY_SCALE)

ALLOWED_TRANSITIONS: Dict[TransferStatus, FrozenSet[Optional[TransferStatus]]] = {
    TransferStatus.DRAFT: frozenset({TransferStatus.CONFIRMED, TransferStatus.CANCELLED, DELETED}),
    TransferStatus.CONFIRMED: frozenset({TransferStatus.RECEIVED, TransferStatus.CANCELLED}),
    TransferStatus.RECEIVED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}


def can_transition(current, target: Optional[TransferStatus]) -> bool:
    return target in ALLOWED_TRANSITIONS.get(TransferStatus(current), frozenset())


class TransferValidator:
    """
    Validación estructural y de transiciones.

    Nunca consulta cantidades de inventario: la suficiencia de stock se
    verifica solo en el commit atómico de confirm.
    """

    def __init__(self, settings: BusinessSettingsInfo, branch_ids: Iterable[str]):
        self.settings = settings
        self.branch_ids = set(branch_ids)

    def ensure_enabled(self) -> None:
        if not self.settings.transfers_enabled:
            raise ValidationError("Las transferencias están deshabilitadas para este negocio")

    def validate_scopes(self, origin: str, destination: str) -> None:
        if not origin or not destination:
            raise ValidationError("Debes indicar sucursal origen y destino")
        if origin == destination:
            raise ValidationError("La sucursal origen y destino deben ser distintas")
        for branch_id in (origin, destination):
            if branch_id not in self.branch_ids:
                raise ValidationError(f"Sucursal {branch_id} no pertenece al negocio", branch_id=branch_id)

    def validate_items(self, items) -> None:
        if not items:
            raise ValidationError("Agrega al menos un producto")
        seen = set()
        for item in items:
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError(
                    "La cantidad debe ser mayor a 0",
                    product_id=item.product_id
                )
            if Decimal(item.quantity) != Decimal(item.quantity).quantize(QUANTITY_STEP):
                raise ValidationError(
                    f"La cantidad admite como máximo {QUANTITY_SCALE} decimales",
                    product_id=item.product_id
                )
            if item.product_id in seen:
                raise ValidationError(
                    "Producto repetido en la transferencia",
                    product_id=item.product_id
                )
            seen.add(item.product_id)

    def validate_draft(self, transfer) -> None:
        """Valida un documento (ORM o schema) con origin_scope/destination_scope e items"""
        self.ensure_enabled()
        self.validate_scopes(transfer.origin_scope, transfer.destination_scope)
        self.validate_items(transfer.items)

    def validate_transition(self, transfer, target: Optional[TransferStatus]) -> None:
        if not can_transition(transfer.status, target):
            target_label = target.value if target else "deleted"
            raise InvalidStateTransition(
                f"No se puede pasar de '{transfer.status}' a '{target_label}'",
                current_status=str(TransferStatus(transfer.status).value),
                target_status=target_label
            )
