from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from app.core.exceptions import UnknownProduct
from app.modules.business.repository import BusinessRepository
from app.modules.business.schemas import InventoryMode
from app.shared.database.models import InventoryRecord, POOL_SCOPE


class InventoryAccessor:
    """
    Lectura del stock disponible de un producto en un scope.

    - Modo por sucursal: el scope es la sucursal.
    - Modo centralizado: el scope se ignora y se lee el pool del negocio.

    Sin efectos secundarios. El valor devuelto es informativo; la
    verificación que cuenta ocurre dentro del commit atómico de confirm.
    """

    def __init__(self, db: Session, business_id: str, mode: InventoryMode):
        self.db = db
        self.business_id = business_id
        self.mode = InventoryMode(mode)
        self.business_repository = BusinessRepository(db)

    def scope_for(self, branch_id: Optional[str]) -> str:
        """Scope de almacenamiento que corresponde a una sucursal"""
        if self.mode == InventoryMode.CENTRALIZED:
            return POOL_SCOPE
        return branch_id

    def ensure_product(self, product_id: str) -> None:
        if not self.business_repository.get_product(self.business_id, product_id):
            raise UnknownProduct(product_id)

    def available(self, scope: Optional[str], product_id: str) -> Optional[Decimal]:
        """
        Cantidad disponible o None si no hay registro de stock (desconocido).

        Lanza UnknownProduct si el producto no existe en el catálogo.
        """
        self.ensure_product(product_id)

        record = self.db.query(InventoryRecord.available_quantity).filter(
            and_(
                InventoryRecord.business_id == self.business_id,
                InventoryRecord.scope == self.scope_for(scope),
                InventoryRecord.product_id == product_id
            )
        ).first()

        if record is None:
            return None
        return Decimal(record.available_quantity)
