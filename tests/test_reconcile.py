import pytest

from sikeu.errors import FeeValidationError
from sikeu.models import PaymentStatus
from sikeu.services.reconcile import allocate_payment, apply_payment, revert_allocation, revert_aggregate
from conftest import item, student_stub


def test_aggregate_payment_without_items():
    student = student_stub(total_biaya=1000000, terbayar=700000, tunggakan=300000)
    result = apply_payment(student, 100000)
    assert student.terbayar == 800000
    assert student.tunggakan == 200000
    assert result.applied == 100000
    assert result.parts == []


def test_aggregate_overpayment_is_clamped():
    student = student_stub(total_biaya=1000000, terbayar=700000, tunggakan=300000)
    result = apply_payment(student, 500000)
    assert student.tunggakan == 0
    assert student.terbayar == 1200000
    assert result.applied == 300000
    assert result.unapplied == 200000

    revert_aggregate(student, 500000)
    assert (student.terbayar, student.tunggakan) == (700000, 300000)


def test_allocation_fills_items_in_order():
    items = [item(500000, 500000, id=1), item(1000000, 0, id=2), item(300000, 0, id=3)]
    result = allocate_payment(items, 1200000)
    assert [(it.id, portion) for it, portion in result.parts] == [(2, 1000000), (3, 200000)]
    assert result.applied == 1200000
    assert result.unapplied == 0


def test_allocation_can_target_items():
    items = [item(1000000, 0, id=1), item(300000, 0, id=2)]
    result = allocate_payment(items, 500000, item_ids=[2])
    assert [(it.id, portion) for it, portion in result.parts] == [(2, 300000)]
    assert result.unapplied == 200000


def test_apply_payment_updates_items_and_totals():
    items = [item(1000000, 0, id=1), item(500000, 500000, id=2)]
    student = student_stub(items=items)
    apply_payment(student, 400000)
    assert items[0].terbayar == 400000
    assert items[0].tunggakan == 600000
    assert items[0].status == PaymentStatus.BELUM_LUNAS
    assert (student.total_biaya, student.terbayar, student.tunggakan) == (1500000, 900000, 600000)


def test_itemized_overpayment_never_goes_negative():
    items = [item(300000, 0, id=1)]
    student = student_stub(items=items)
    result = apply_payment(student, 1000000)
    assert items[0].terbayar == 300000
    assert student.tunggakan == 0
    assert result.unapplied == 700000


def test_revert_allocation_restores_previous_state():
    items = [item(1000000, 0, id=1), item(300000, 0, id=2)]
    student = student_stub(items=items)
    result = apply_payment(student, 1100000)
    revert_allocation(student, result.parts)
    assert [it.terbayar for it in items] == [0, 0]
    assert (student.total_biaya, student.terbayar, student.tunggakan) == (1300000, 0, 1300000)


def test_revert_aggregate():
    student = student_stub(total_biaya=1000000, terbayar=800000, tunggakan=200000)
    revert_aggregate(student, 100000)
    assert student.terbayar == 700000
    assert student.tunggakan == 300000


@pytest.mark.parametrize('amount', [0, -5000, None])
def test_non_positive_payment_is_rejected(amount):
    with pytest.raises(FeeValidationError):
        allocate_payment([item(1000, 0, id=1)], amount)
    with pytest.raises(FeeValidationError):
        apply_payment(student_stub(tunggakan=1000), amount)
