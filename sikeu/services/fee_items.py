"""
Agregasi rincian biaya (administrasi) per siswa.

Semua fungsi di sini murni: menerima objek apa pun yang punya atribut
``jumlah`` dan ``terbayar`` (model ``BiayaItem`` atau objek sederhana di test)
dan tidak menyentuh database.
"""
from collections import namedtuple

from sikeu.errors import FeeValidationError
from sikeu.models import PaymentStatus


FeeTotals = namedtuple('FeeTotals', ['total_biaya', 'terbayar', 'tunggakan'])


def item_status(jumlah, terbayar):
    if (jumlah or 0) - (terbayar or 0) <= 0:
        return PaymentStatus.LUNAS
    return PaymentStatus.BELUM_LUNAS


def validate_item_amounts(jumlah, terbayar=0):
    if jumlah is None or jumlah <= 0:
        raise FeeValidationError('Jumlah biaya harus berupa angka positif.')
    if terbayar is None or terbayar < 0:
        raise FeeValidationError('Jumlah terbayar harus berupa angka positif atau 0.')
    if terbayar > jumlah:
        raise FeeValidationError('Jumlah terbayar tidak boleh melebihi jumlah biaya.')


def refresh_item(item):
    """Hitung ulang tunggakan & status satu item dari jumlah/terbayar."""
    item.tunggakan = (item.jumlah or 0) - (item.terbayar or 0)
    item.status = item_status(item.jumlah, item.terbayar)
    return item


def calculate_totals(items):
    items = items or []
    total_biaya = sum(item.jumlah or 0 for item in items)
    terbayar = sum(item.terbayar or 0 for item in items)
    return FeeTotals(total_biaya, terbayar, total_biaya - terbayar)


def apply_totals(student, items=None):
    """Tulis total cache ke record siswa. Tunggakan dijepit di 0."""
    if items is None:
        items = student.rincian_biaya
    totals = calculate_totals(items)
    student.total_biaya = totals.total_biaya
    student.terbayar = totals.terbayar
    student.tunggakan = max(0, totals.tunggakan)
    return totals


def items_from_catalog(entries):
    """Template item (belum dibayar) dari master Biaya Administrasi."""
    return [
        {'nama_biaya': entry.nama, 'jumlah': entry.jumlah, 'terbayar': 0}
        for entry in entries
    ]
