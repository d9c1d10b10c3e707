from decimal import Decimal

from app.modules.transfers.repository import TransferRepository
from app.modules.transfers.schemas import TransferStatus
from app.shared.database.models import StockTransfer

from conftest import stock_of


def create_draft(repository, ids, items):
    return repository.create_transfer(
        {"business_id": ids.business_id, "origin_scope": ids.a, "destination_scope": ids.b},
        [{"product_id": pid, "quantity": Decimal(q)} for pid, q in items]
    )


def test_decrement_applies_when_enough_stock(db, per_branch):
    repository = TransferRepository(db)
    assert repository.atomic_decrement(per_branch.business_id, per_branch.a, per_branch.widget, Decimal("4"))
    db.commit()
    assert stock_of(db, per_branch.business_id, per_branch.a, per_branch.widget) == Decimal("6")


def test_decrement_to_exactly_zero(db, per_branch):
    repository = TransferRepository(db)
    assert repository.atomic_decrement(per_branch.business_id, per_branch.a, per_branch.widget, Decimal("10"))
    db.commit()
    assert stock_of(db, per_branch.business_id, per_branch.a, per_branch.widget) == Decimal("0")


def test_decrement_refuses_to_go_negative(db, per_branch):
    repository = TransferRepository(db)
    assert not repository.atomic_decrement(per_branch.business_id, per_branch.a, per_branch.widget, Decimal("11"))
    db.commit()
    assert stock_of(db, per_branch.business_id, per_branch.a, per_branch.widget) == Decimal("10")


def test_decrement_without_record_is_insufficient(db, per_branch):
    repository = TransferRepository(db)
    assert not repository.atomic_decrement(per_branch.business_id, per_branch.c, per_branch.widget, Decimal("1"))


def test_competing_decrements_never_both_succeed(db, per_branch):
    repository = TransferRepository(db)
    first = repository.atomic_decrement(per_branch.business_id, per_branch.a, per_branch.widget, Decimal("6"))
    second = repository.atomic_decrement(per_branch.business_id, per_branch.a, per_branch.widget, Decimal("6"))
    db.commit()
    assert (first, second) == (True, False)
    assert stock_of(db, per_branch.business_id, per_branch.a, per_branch.widget) == Decimal("4")


def test_increment_existing_and_missing_records(db, per_branch):
    repository = TransferRepository(db)
    repository.atomic_increment(per_branch.business_id, per_branch.b, per_branch.widget, Decimal("3"))
    repository.atomic_increment(per_branch.business_id, per_branch.c, per_branch.gadget, Decimal("1.5"))
    db.commit()
    assert stock_of(db, per_branch.business_id, per_branch.b, per_branch.widget) == Decimal("5")
    assert stock_of(db, per_branch.business_id, per_branch.c, per_branch.gadget) == Decimal("1.5")


def test_status_cas_only_applies_from_expected_status(db, per_branch):
    repository = TransferRepository(db)
    transfer = create_draft(repository, per_branch, [(per_branch.widget, "1")])

    assert repository.compare_and_set_status(transfer.id, TransferStatus.DRAFT, TransferStatus.CONFIRMED)
    assert not repository.compare_and_set_status(transfer.id, TransferStatus.DRAFT, TransferStatus.CONFIRMED)
    db.commit()

    reloaded = repository.get_transfer_by_id(per_branch.business_id, transfer.id)
    assert reloaded.status == "confirmed"
    assert reloaded.confirmed_at is not None
    assert reloaded.received_at is None


def test_merge_item_sums_quantity(db, per_branch):
    repository = TransferRepository(db)
    transfer = create_draft(repository, per_branch, [(per_branch.widget, "2")])

    assert repository.lock_draft(transfer.id)
    repository.add_or_merge_item(transfer.id, per_branch.widget, Decimal("3"))
    repository.add_or_merge_item(transfer.id, per_branch.gadget, Decimal("1"))
    db.commit()

    assert repository.get_item_quantities(transfer.id) == [
        (per_branch.widget, Decimal("5")),
        (per_branch.gadget, Decimal("1")),
    ]


def test_delete_draft_only(db, per_branch):
    repository = TransferRepository(db)
    draft = create_draft(repository, per_branch, [(per_branch.widget, "1")])
    confirmed = create_draft(repository, per_branch, [(per_branch.widget, "1")])
    repository.compare_and_set_status(confirmed.id, TransferStatus.DRAFT, TransferStatus.CONFIRMED)
    db.commit()

    assert repository.delete_draft(draft.id)
    assert not repository.delete_draft(confirmed.id)
    db.commit()

    assert db.query(StockTransfer).filter(StockTransfer.id == draft.id).first() is None
    assert repository.get_status(confirmed.id) == "confirmed"
    assert repository.get_item_quantities(draft.id) == []
