import uuid

from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, ForeignKey, Numeric, Integer,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.config.database import Base

# Scope de inventario para el stock compartido en modo centralizado
POOL_SCOPE = "*"

# Decimales de toda cantidad de stock o de línea
QUANTITY_SCALE = 3
QUANTITY = Numeric(14, QUANTITY_SCALE)


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin para timestamps automáticos"""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

# ===== NEGOCIO Y SUCURSALES =====

class Business(Base, TimestampMixin):
    """Negocio (tenant)"""
    __tablename__ = "businesses"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)

    # Relationships
    branches = relationship("Branch", back_populates="business")
    settings = relationship("BusinessSettings", back_populates="business", uselist=False)


class Branch(Base, TimestampMixin):
    """Sucursal de un negocio"""
    __tablename__ = "branches"

    id = Column(String(36), primary_key=True, default=new_id)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    is_main = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    business = relationship("Business", back_populates="branches")


class BusinessSettings(Base, TimestampMixin):
    """Preferencias de inventario del negocio"""
    __tablename__ = "business_settings"

    business_id = Column(String(36), ForeignKey("businesses.id"), primary_key=True)
    inventory_mode = Column(String(20), default="per_branch", nullable=False)
    transfers_enabled = Column(Boolean, default=True, nullable=False)
    transfer_auto_confirm = Column(Boolean, default=False, nullable=False)
    default_branch_id = Column(String(36), ForeignKey("branches.id"))

    # Relationships
    business = relationship("Business", back_populates="settings")

# ===== PRODUCTOS E INVENTARIO =====

class Product(Base, TimestampMixin):
    """Producto del catálogo"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(100), index=True)
    is_active = Column(Boolean, default=True, nullable=False)


class InventoryRecord(Base):
    """
    Stock disponible por (scope, producto).

    scope = id de sucursal en modo por sucursal, POOL_SCOPE en modo centralizado.
    """
    __tablename__ = "inventory_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False)
    scope = Column(String(36), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    available_quantity = Column(QUANTITY, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("business_id", "scope", "product_id", name="inventory_records_scope_product_key"),
        CheckConstraint("available_quantity >= 0", name="inventory_records_non_negative"),
    )

# ===== TRANSFERENCIAS =====

class StockTransfer(Base):
    """Documento de transferencia entre sucursales"""
    __tablename__ = "stock_transfers"

    id = Column(String(36), primary_key=True, default=new_id)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    origin_scope = Column(String(36), nullable=False, index=True)
    destination_scope = Column(String(36), nullable=False, index=True)
    status = Column(String(20), default="draft", nullable=False, index=True)
    comment = Column(Text)
    # Modo de inventario vigente al confirmar; receive y cancel lo respetan
    inventory_mode = Column(String(20))
    cancel_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True))
    confirmed_at = Column(DateTime(timezone=True))
    received_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("origin_scope <> destination_scope", name="stock_transfers_distinct_scopes"),
    )

    # Relationships
    items = relationship(
        "StockTransferItem",
        back_populates="transfer",
        order_by="StockTransferItem.position",
        cascade="all, delete-orphan"
    )


class StockTransferItem(Base):
    """Línea de una transferencia (una por producto)"""
    __tablename__ = "stock_transfer_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transfer_id = Column(String(36), ForeignKey("stock_transfers.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(QUANTITY, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("transfer_id", "product_id", name="stock_transfer_items_product_key"),
        CheckConstraint("quantity > 0", name="stock_transfer_items_positive"),
    )

    # Relationships
    transfer = relationship("StockTransfer", back_populates="items")
    product = relationship("Product")
