import pytest

from sikeu.errors import FeeValidationError
from sikeu.models import PaymentStatus
from sikeu.services.fee_items import (
    calculate_totals, apply_totals, refresh_item, item_status, validate_item_amounts, items_from_catalog,
)
from conftest import item, student_stub


def test_totals_are_sums_of_items():
    items = [item(1000000, 0), item(500000, 500000)]
    totals = calculate_totals(items)
    assert totals == (1500000, 500000, 1000000)
    assert totals.tunggakan == totals.total_biaya - totals.terbayar


def test_totals_of_empty_list_are_zero():
    assert calculate_totals([]) == (0, 0, 0)
    assert calculate_totals(None) == (0, 0, 0)


def test_item_status_lunas_iff_no_outstanding():
    assert item_status(500000, 500000) == PaymentStatus.LUNAS
    assert item_status(500000, 600000) == PaymentStatus.LUNAS
    assert item_status(500000, 499999) == PaymentStatus.BELUM_LUNAS
    assert item_status(500000, 0) == PaymentStatus.BELUM_LUNAS


def test_refresh_item_derives_tunggakan_and_status():
    it = refresh_item(item(750000, 250000))
    assert it.tunggakan == 500000
    assert it.status == PaymentStatus.BELUM_LUNAS

    it.terbayar = 750000
    refresh_item(it)
    assert it.tunggakan == 0
    assert it.status == PaymentStatus.LUNAS


def test_apply_totals_is_idempotent():
    student = student_stub(items=[item(1000000, 0), item(500000, 500000)])
    first = apply_totals(student)
    snapshot = (student.total_biaya, student.terbayar, student.tunggakan)
    second = apply_totals(student)
    assert first == second
    assert (student.total_biaya, student.terbayar, student.tunggakan) == snapshot == (1500000, 500000, 1000000)


def test_apply_totals_clamps_tunggakan_at_zero():
    student = student_stub(items=[item(100000, 150000)])
    apply_totals(student)
    assert student.tunggakan == 0


@pytest.mark.parametrize('jumlah, terbayar', [(0, 0), (-1, 0), (None, 0), (100, -1), (100, 101)])
def test_validate_item_amounts_rejects_bad_input(jumlah, terbayar):
    with pytest.raises(FeeValidationError):
        validate_item_amounts(jumlah, terbayar)


def test_validate_item_amounts_accepts_full_payment():
    validate_item_amounts(100000, 100000)
    validate_item_amounts(100000)


def test_items_from_catalog_start_unpaid():
    from types import SimpleNamespace
    entries = [SimpleNamespace(nama='Seragam', jumlah=850000), SimpleNamespace(nama='Buku', jumlah=650000)]
    assert items_from_catalog(entries) == [
        {'nama_biaya': 'Seragam', 'jumlah': 850000, 'terbayar': 0},
        {'nama_biaya': 'Buku', 'jumlah': 650000, 'terbayar': 0},
    ]
