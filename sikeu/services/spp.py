"""
Kalkulator SPP / Infaq Bulanan.

Tahun ajaran sekolah berjalan Juli (tahun awal) s.d. Juni (tahun akhir).
Bulan yang belum punya record ``SPPBulanan`` disintesis sebagai tunggakan penuh
sesuai nominal standar status siswa (Mukim / Non Mukim).
"""
import re
from collections import namedtuple

from sikeu.errors import InvalidAcademicYear, OverpaymentError, DuplicateSPPError, FeeValidationError
from sikeu.models import PaymentStatus, ResidencyStatus


NAMA_BULAN = {
    '01': 'Januari', '02': 'Februari', '03': 'Maret', '04': 'April',
    '05': 'Mei', '06': 'Juni', '07': 'Juli', '08': 'Agustus',
    '09': 'September', '10': 'Oktober', '11': 'November', '12': 'Desember',
}

# Urutan bulan dalam satu tahun ajaran: (kode bulan, pakai tahun akhir?)
ACADEMIC_MONTH_ORDER = [
    ('07', False), ('08', False), ('09', False), ('10', False), ('11', False), ('12', False),
    ('01', True), ('02', True), ('03', True), ('04', True), ('05', True), ('06', True),
]

_TAHUN_AJARAN_RE = re.compile(r'^\s*(\d{4})\s*/\s*(\d{4})\s*$')

NominalInfaq = namedtuple('NominalInfaq', ['mukim', 'non_mukim'])
DEFAULT_NOMINAL = NominalInfaq(600000, 400000)

MonthSlot = namedtuple('MonthSlot', [
    'bulan', 'tahun', 'tahun_ajaran', 'nama_bulan', 'record',
    'nominal_harus_bayar', 'terbayar', 'tunggakan', 'status',
])

SPPTotals = namedtuple('SPPTotals', ['harus_bayar', 'terbayar', 'tunggakan', 'bulan_lunas'])


def parse_tahun_ajaran(value):
    match = _TAHUN_AJARAN_RE.match(value or '')
    if not match:
        raise InvalidAcademicYear(value)
    start_year, end_year = int(match.group(1)), int(match.group(2))
    if end_year != start_year + 1:
        raise InvalidAcademicYear(value)
    return start_year, end_year


def normalize_tahun_ajaran(value):
    start_year, end_year = parse_tahun_ajaran(value)
    return f'{start_year}/{end_year}'


def academic_months(tahun_ajaran):
    start_year, end_year = parse_tahun_ajaran(tahun_ajaran)
    return [(bulan, end_year if next_year else start_year) for bulan, next_year in ACADEMIC_MONTH_ORDER]


def derive_spp_status(jumlah, terbayar):
    jumlah = jumlah or 0
    terbayar = terbayar or 0
    if jumlah - terbayar <= 0:
        return PaymentStatus.LUNAS
    if 0 < terbayar < jumlah:
        return PaymentStatus.SEBAGIAN
    return PaymentStatus.BELUM_LUNAS


def refresh_record(record):
    record.tunggakan = max(0, (record.jumlah_spp or 0) - (record.terbayar or 0))
    record.status_pembayaran = derive_spp_status(record.jumlah_spp, record.terbayar)
    return record


def _status_value(status):
    return getattr(status, 'value', status)


def monthly_rate(status, rates=DEFAULT_NOMINAL):
    if _status_value(status) == ResidencyStatus.MUKIM.value:
        return rates.mukim
    return rates.non_mukim


def generate_month_slots(student, records, rates=DEFAULT_NOMINAL):
    """12 slot bulan (Juli-Juni) untuk tahun ajaran siswa."""
    lookup = {
        r.bulan: r for r in records or []
        if r.siswa_id == student.id and r.tahun_ajaran == student.tahun_ajaran
    }
    rate = monthly_rate(student.status, rates)

    slots = []
    for bulan, tahun in academic_months(student.tahun_ajaran):
        record = lookup.get(bulan)
        if record is not None:
            harus_bayar = record.jumlah_spp or 0
            terbayar = record.terbayar or 0
        else:
            harus_bayar = rate
            terbayar = 0

        slots.append(MonthSlot(
            bulan=bulan,
            tahun=tahun,
            tahun_ajaran=student.tahun_ajaran,
            nama_bulan=f'{NAMA_BULAN[bulan]} {tahun}',
            record=record,
            nominal_harus_bayar=harus_bayar,
            terbayar=terbayar,
            tunggakan=max(0, harus_bayar - terbayar),
            status=derive_spp_status(harus_bayar, terbayar),
        ))
    return slots


def summarize_slots(slots):
    return SPPTotals(
        harus_bayar=sum(s.nominal_harus_bayar for s in slots),
        terbayar=sum(s.terbayar for s in slots),
        tunggakan=sum(s.tunggakan for s in slots),
        bulan_lunas=sum(1 for s in slots if s.status == PaymentStatus.LUNAS),
    )


def apply_spp_payment(record, amount):
    """Tambah pembayaran ke record bulan yang sudah ada."""
    if amount is None or amount <= 0:
        raise FeeValidationError('Nominal harus berupa angka positif.')
    outstanding = max(0, (record.jumlah_spp or 0) - (record.terbayar or 0))
    if outstanding <= 0:
        raise DuplicateSPPError(
            f'Pembayaran untuk {NAMA_BULAN.get(record.bulan, record.bulan)} {record.tahun_ajaran} sudah lunas.'
        )
    if amount > outstanding:
        raise OverpaymentError(amount, outstanding)
    record.terbayar = (record.terbayar or 0) + amount
    return refresh_record(record)
