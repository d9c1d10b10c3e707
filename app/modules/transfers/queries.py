from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.modules.transfers.repository import TransferRepository
from app.modules.transfers.schemas import StockTransferResponse, TransferFilters
from app.modules.transfers.service import build_transfer_response


class TransferQueryService:
    """Proyección de solo lectura sobre las transferencias de un negocio"""

    def __init__(self, db: Session):
        self.db = db
        self.repository = TransferRepository(db)

    @staticmethod
    def normalize_limit(limit: Optional[int]) -> int:
        """Sin límite o inválido -> valor por defecto; nunca más que el tope"""
        if not limit or limit <= 0:
            return settings.transfer_list_default_limit
        return min(limit, settings.transfer_list_max_limit)

    def list_transfers(self, business_id: str, filters: Optional[TransferFilters] = None,
                       limit: Optional[int] = None) -> List[StockTransferResponse]:
        transfers = self.repository.list_transfers(
            business_id,
            filters or TransferFilters(),
            self.normalize_limit(limit)
        )
        return [build_transfer_response(t) for t in transfers]

    def summary(self, business_id: str) -> Dict[str, int]:
        counts = self.repository.count_by_status(business_id)
        counts["total"] = sum(counts.values())
        return counts
