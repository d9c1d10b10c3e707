import os

# La configuración exige DATABASE_URL antes de importar la app
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import and_, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.database import Base, get_db
from app.main import app
from app.shared.database.models import (
    Business, Branch, BusinessSettings, Product, InventoryRecord, POOL_SCOPE
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def seed_business(db, mode="per_branch", transfers_enabled=True, auto_confirm=False, stock=None):
    """
    Negocio con tres sucursales (A principal, B, C) y dos productos.

    `stock` mapea (scope, nombre_producto) -> cantidad; el scope es "A", "B",
    "C" o POOL_SCOPE.
    """
    business = Business(name="Kiosco Central")
    db.add(business)
    db.flush()

    branches = {
        key: Branch(business_id=business.id, name=f"Sucursal {key}", is_main=(key == "A"))
        for key in ("A", "B", "C")
    }
    db.add_all(branches.values())
    products = {
        "widget": Product(business_id=business.id, name="Widget", code="W-1"),
        "gadget": Product(business_id=business.id, name="Gadget", code="G-1"),
    }
    db.add_all(products.values())
    db.flush()

    db.add(BusinessSettings(
        business_id=business.id,
        inventory_mode=mode,
        transfers_enabled=transfers_enabled,
        transfer_auto_confirm=auto_confirm,
        default_branch_id=branches["A"].id
    ))

    for (scope_key, product_key), quantity in (stock or {}).items():
        scope = POOL_SCOPE if scope_key == POOL_SCOPE else branches[scope_key].id
        db.add(InventoryRecord(
            business_id=business.id,
            scope=scope,
            product_id=products[product_key].id,
            available_quantity=Decimal(quantity)
        ))
    db.commit()

    return SimpleNamespace(
        business_id=business.id,
        a=branches["A"].id,
        b=branches["B"].id,
        c=branches["C"].id,
        widget=products["widget"].id,
        gadget=products["gadget"].id,
    )


@pytest.fixture
def per_branch(db):
    """Sucursal A: 10 widgets, 3 gadgets. Sucursal B: 2 widgets."""
    return seed_business(db, stock={("A", "widget"): 10, ("A", "gadget"): 3, ("B", "widget"): 2})


@pytest.fixture
def centralized(db):
    """Pool del negocio: 20 widgets"""
    return seed_business(db, mode="centralized", stock={(POOL_SCOPE, "widget"): 20})


def stock_of(db, business_id, scope, product_id):
    """Cantidad leída directo de la base; None si no hay registro"""
    row = db.query(InventoryRecord.available_quantity).filter(
        and_(
            InventoryRecord.business_id == business_id,
            InventoryRecord.scope == scope,
            InventoryRecord.product_id == product_id
        )
    ).first()
    return None if row is None else Decimal(row.available_quantity)
