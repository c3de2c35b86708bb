"""
Rekonsiliasi pembayaran terhadap rincian biaya siswa.

Rincian biaya adalah sumber kebenaran: pembayaran umum (tanpa bulan SPP)
dialokasikan berurutan ke item yang masih menunggak, lalu total siswa
diturunkan ulang. Siswa tanpa rincian (misal hasil import lama yang hanya
membawa total) memakai pembaruan agregat langsung.

Kelebihan bayar tidak ditolak. Item hanya diisi sampai lunas dan sisanya
dikembalikan sebagai `unapplied`; tunggakan tidak pernah di bawah nol.
"""
from collections import namedtuple

from sikeu.errors import FeeValidationError
from sikeu.services.fee_items import refresh_item, apply_totals


Allocation = namedtuple('Allocation', ['applied', 'unapplied', 'parts'])


def _outstanding(item):
    return max(0, (item.jumlah or 0) - (item.terbayar or 0))


def allocate_payment(items, amount, item_ids=None):
    if amount is None or amount <= 0:
        raise FeeValidationError('Jumlah pembayaran harus berupa angka positif.')

    targets = [
        item for item in items or []
        if item_ids is None or item.id in item_ids
    ]

    remaining = amount
    parts = []
    for item in targets:
        if remaining <= 0:
            break
        outstanding = _outstanding(item)
        if outstanding <= 0:
            continue
        portion = min(outstanding, remaining)
        parts.append((item, portion))
        remaining -= portion

    return Allocation(applied=amount - remaining, unapplied=remaining, parts=parts)


def apply_payment(student, amount, item_ids=None):
    items = list(student.rincian_biaya or [])

    if not items:
        if amount is None or amount <= 0:
            raise FeeValidationError('Jumlah pembayaran harus berupa angka positif.')
        applied = min(amount, max(0, student.tunggakan or 0))
        # kelebihan tetap tercatat sebagai terbayar, tunggakan berhenti di nol
        student.terbayar = (student.terbayar or 0) + amount
        student.tunggakan = max(0, (student.tunggakan or 0) - amount)
        return Allocation(applied=applied, unapplied=amount - applied, parts=[])

    allocation = allocate_payment(items, amount, item_ids)
    for item, portion in allocation.parts:
        item.terbayar = (item.terbayar or 0) + portion
        refresh_item(item)
    apply_totals(student, items)
    return allocation


def revert_allocation(student, parts):
    """Batalkan alokasi sebelumnya; parts = [(item, jumlah), ...]."""
    for item, portion in parts:
        item.terbayar = max(0, (item.terbayar or 0) - portion)
        refresh_item(item)
    apply_totals(student)


def revert_aggregate(student, amount):
    """Pasangan dari jalur agregat di apply_payment (siswa tanpa rincian)."""
    student.terbayar = max(0, (student.terbayar or 0) - amount)
    student.tunggakan = max(0, (student.total_biaya or 0) - student.terbayar)
