"""
Módulo de Negocio

Lecturas de los colaboradores externos que consume el motor de
transferencias: directorio de sucursales, preferencias del negocio y
catálogo de productos.
"""

from .repository import BusinessRepository
from .schemas import BranchInfo, BusinessSettingsInfo, InventoryMode, ProductInfo

__all__ = [
    "BusinessRepository",
    "BranchInfo",
    "BusinessSettingsInfo",
    "InventoryMode",
    "ProductInfo"
]
