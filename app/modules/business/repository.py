from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc

from app.shared.database.models import Branch, BusinessSettings, Product
from app.modules.business.schemas import BranchInfo, BusinessSettingsInfo, ProductInfo

class BusinessRepository:
    """
    Lecturas sobre el directorio de sucursales, las preferencias del negocio
    y el catálogo de productos. Este módulo no escribe en esas tablas.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_branches(self, business_id: str) -> List[BranchInfo]:
        branches = self.db.query(Branch).filter(
            and_(
                Branch.business_id == business_id,
                Branch.is_active == True
            )
        ).order_by(desc(Branch.is_main), Branch.name).all()
        return [BranchInfo.model_validate(b) for b in branches]

    def get_settings(self, business_id: str) -> BusinessSettingsInfo:
        """Preferencias del negocio; sin registro se usan los valores por defecto"""
        row = self.db.query(BusinessSettings).filter(
            BusinessSettings.business_id == business_id
        ).first()
        if not row:
            return BusinessSettingsInfo(business_id=business_id)
        return BusinessSettingsInfo.model_validate(row)

    def get_product(self, business_id: str, product_id: str) -> Optional[ProductInfo]:
        product = self.db.query(Product).filter(
            and_(
                Product.id == product_id,
                Product.business_id == business_id,
                Product.is_active == True
            )
        ).first()
        return ProductInfo.model_validate(product) if product else None
