from typing import Optional
from pydantic import BaseModel
from enum import Enum

# ===== ENUMS =====

class InventoryMode(str, Enum):
    PER_BRANCH = "per_branch"
    CENTRALIZED = "centralized"

# ===== RESPONSE SCHEMAS =====

class BranchInfo(BaseModel):
    """Sucursal tal como la expone el directorio"""
    id: str
    name: str
    is_main: bool = False

    class Config:
        from_attributes = True

class BusinessSettingsInfo(BaseModel):
    """Preferencias de inventario y transferencias del negocio"""
    business_id: str
    inventory_mode: InventoryMode = InventoryMode.PER_BRANCH
    transfers_enabled: bool = True
    transfer_auto_confirm: bool = False
    default_branch_id: Optional[str] = None

    class Config:
        from_attributes = True

class ProductInfo(BaseModel):
    """Información básica del producto"""
    id: str
    name: str
    code: Optional[str] = None

    class Config:
        from_attributes = True
