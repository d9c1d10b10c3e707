from decimal import Decimal

from app.config.settings import settings
from app.modules.transfers.queries import TransferQueryService
from app.modules.transfers.schemas import (
    StockTransferCreate, TransferFilters, TransferItemCreate, TransferStatus
)
from app.modules.transfers.service import TransferService

from conftest import seed_business


def create(service, ids, origin, destination, quantity="1"):
    return service.create_draft(ids.business_id, StockTransferCreate(
        origin_branch_id=origin,
        destination_branch_id=destination,
        items=[TransferItemCreate(product_id=ids.widget, quantity=Decimal(quantity))]
    ))


def test_list_newest_first(db, per_branch):
    service = TransferService(db)
    first = create(service, per_branch, per_branch.a, per_branch.b)
    second = create(service, per_branch, per_branch.b, per_branch.c)
    third = create(service, per_branch, per_branch.a, per_branch.c)

    listed = TransferQueryService(db).list_transfers(per_branch.business_id)
    assert [t.id for t in listed] == [third.id, second.id, first.id]


def test_list_filters(db, per_branch):
    service = TransferService(db)
    a_to_b = create(service, per_branch, per_branch.a, per_branch.b)
    a_to_c = create(service, per_branch, per_branch.a, per_branch.c)
    b_to_c = create(service, per_branch, per_branch.b, per_branch.c)
    service.confirm(per_branch.business_id, a_to_c.id)

    queries = TransferQueryService(db)
    by_origin = queries.list_transfers(per_branch.business_id, TransferFilters(origin_branch_id=per_branch.a))
    by_destination = queries.list_transfers(per_branch.business_id, TransferFilters(destination_branch_id=per_branch.c))
    confirmed = queries.list_transfers(per_branch.business_id, TransferFilters(status=TransferStatus.CONFIRMED))
    combined = queries.list_transfers(per_branch.business_id, TransferFilters(
        status=TransferStatus.DRAFT, destination_branch_id=per_branch.c
    ))

    assert {t.id for t in by_origin} == {a_to_b.id, a_to_c.id}
    assert {t.id for t in by_destination} == {a_to_c.id, b_to_c.id}
    assert [t.id for t in confirmed] == [a_to_c.id]
    assert [t.id for t in combined] == [b_to_c.id]


def test_list_is_scoped_to_business(db, per_branch):
    other = seed_business(db, stock={("A", "widget"): 5})
    create(TransferService(db), other, other.a, other.b)

    assert TransferQueryService(db).list_transfers(per_branch.business_id) == []


def test_limit_caps_results(db, per_branch):
    service = TransferService(db)
    for _ in range(4):
        create(service, per_branch, per_branch.a, per_branch.b)

    assert len(TransferQueryService(db).list_transfers(per_branch.business_id, limit=2)) == 2


def test_normalize_limit_bounds():
    assert TransferQueryService.normalize_limit(None) == settings.transfer_list_default_limit
    assert TransferQueryService.normalize_limit(0) == settings.transfer_list_default_limit
    assert TransferQueryService.normalize_limit(10) == 10
    assert TransferQueryService.normalize_limit(10_000) == settings.transfer_list_max_limit


def test_summary_counts_by_status(db, per_branch):
    service = TransferService(db)
    create(service, per_branch, per_branch.a, per_branch.b)
    confirmed = create(service, per_branch, per_branch.a, per_branch.b)
    service.confirm(per_branch.business_id, confirmed.id)

    summary = TransferQueryService(db).summary(per_branch.business_id)
    assert summary == {"draft": 1, "confirmed": 1, "received": 0, "cancelled": 0, "total": 2}
