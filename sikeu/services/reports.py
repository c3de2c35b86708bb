"""Rekap laporan: dihitung ulang dari data terbaru setiap request, tanpa cache."""
from collections import namedtuple

from sikeu.models import TransactionType


FeeSummary = namedtuple('FeeSummary', [
    'jumlah_siswa', 'total_biaya', 'terbayar', 'tunggakan',
    'completion_rate', 'fully_paid', 'with_arrears', 'persen_lunas',
])

SPPSummary = namedtuple('SPPSummary', [
    'total_siswa', 'total_seharusnya', 'total_terbayar', 'total_tunggakan',
    'siswa_lunas', 'siswa_belum_bayar', 'persentase_lunas',
])

CashflowSummary = namedtuple('CashflowSummary', [
    'daily_income', 'daily_expense', 'monthly_income', 'monthly_expense',
    'yearly_income', 'yearly_expense', 'total_income', 'total_expense', 'current_balance',
])

BULAN_SINGKAT = ['Jan', 'Feb', 'Mar', 'Apr', 'Mei', 'Jun', 'Jul', 'Agu', 'Sep', 'Okt', 'Nov', 'Des']


def _is_all(value):
    return value in (None, '', 'all')


def _status_value(status):
    return getattr(status, 'value', status)


def filter_students(students, kelas=None, tahun_ajaran=None, status=None, search=None, payment_state=None):
    query = (search or '').strip().lower()

    result = []
    for student in students:
        if not _is_all(kelas) and student.kelas != kelas:
            continue
        if not _is_all(tahun_ajaran) and student.tahun_ajaran != tahun_ajaran:
            continue
        if not _is_all(status) and _status_value(student.status) != _status_value(status):
            continue
        if payment_state == 'lunas' and (student.tunggakan or 0) != 0:
            continue
        if payment_state == 'belum-lunas' and (student.tunggakan or 0) <= 0:
            continue
        if query and not (
            query in (student.nama or '').lower()
            or query in (student.nis or '').lower()
            or query in (student.nisn or '').lower()
        ):
            continue
        result.append(student)
    return result


def fee_summary(students):
    students = list(students)
    total_biaya = sum(s.total_biaya or 0 for s in students)
    terbayar = sum(s.terbayar or 0 for s in students)
    tunggakan = sum(s.tunggakan or 0 for s in students)
    fully_paid = sum(1 for s in students if (s.tunggakan or 0) == 0)
    with_arrears = sum(1 for s in students if (s.tunggakan or 0) > 0)

    return FeeSummary(
        jumlah_siswa=len(students),
        total_biaya=total_biaya,
        terbayar=terbayar,
        tunggakan=tunggakan,
        completion_rate=(terbayar / total_biaya * 100) if total_biaya > 0 else 0,
        fully_paid=fully_paid,
        with_arrears=with_arrears,
        persen_lunas=round(fully_paid / len(students) * 100) if students else 0,
    )


def spp_summary(rows):
    """rows: iterable objek/dict dengan total SPP per siswa (lihat repository.spp_overview)."""
    rows = list(rows)
    total_terbayar = sum(r['totals'].terbayar for r in rows)
    total_tunggakan = sum(r['totals'].tunggakan for r in rows)
    siswa_lunas = sum(1 for r in rows if r['totals'].tunggakan == 0)
    siswa_belum_bayar = sum(1 for r in rows if r['totals'].terbayar == 0)

    return SPPSummary(
        total_siswa=len(rows),
        total_seharusnya=total_terbayar + total_tunggakan,
        total_terbayar=total_terbayar,
        total_tunggakan=total_tunggakan,
        siswa_lunas=siswa_lunas,
        siswa_belum_bayar=siswa_belum_bayar,
        persentase_lunas=round(siswa_lunas / len(rows) * 100) if rows else 0,
    )


def _sum_by_type(transactions, tipe):
    return sum(t.jumlah or 0 for t in transactions if t.tipe == tipe)


def cashflow_summary(transactions, today):
    transactions = [t for t in transactions if t.tanggal is not None]
    daily = [t for t in transactions if t.tanggal == today]
    monthly = [t for t in transactions if t.tanggal.year == today.year and t.tanggal.month == today.month]
    yearly = [t for t in transactions if t.tanggal.year == today.year]

    total_income = _sum_by_type(transactions, TransactionType.PEMASUKAN)
    total_expense = _sum_by_type(transactions, TransactionType.PENGELUARAN)

    return CashflowSummary(
        daily_income=_sum_by_type(daily, TransactionType.PEMASUKAN),
        daily_expense=_sum_by_type(daily, TransactionType.PENGELUARAN),
        monthly_income=_sum_by_type(monthly, TransactionType.PEMASUKAN),
        monthly_expense=_sum_by_type(monthly, TransactionType.PENGELUARAN),
        yearly_income=_sum_by_type(yearly, TransactionType.PEMASUKAN),
        yearly_expense=_sum_by_type(yearly, TransactionType.PENGELUARAN),
        total_income=total_income,
        total_expense=total_expense,
        current_balance=total_income - total_expense,
    )


def monthly_trend(transactions, year):
    rows = []
    for index, label in enumerate(BULAN_SINGKAT, start=1):
        in_month = [
            t for t in transactions
            if t.tanggal is not None and t.tanggal.year == year and t.tanggal.month == index
        ]
        rows.append({
            'name': label,
            'pemasukan': _sum_by_type(in_month, TransactionType.PEMASUKAN),
            'pengeluaran': _sum_by_type(in_month, TransactionType.PENGELUARAN),
        })
    return rows


def students_with_arrears(students):
    return sorted(
        (s for s in students if (s.tunggakan or 0) > 0),
        key=lambda s: s.tunggakan,
        reverse=True,
    )


def unique_values(students, attr):
    return sorted({getattr(s, attr) for s in students if getattr(s, attr, None)})
