import re
from datetime import date

import pytest

from sikeu.extensions import db
from sikeu.errors import (
    FeeValidationError, InvalidAcademicYear, OverpaymentError, DuplicateSPPError,
)
from sikeu.models import (
    Student, BiayaItem, SPPBulanan, Transaction, Payment, PaymentAllocation,
    PaymentStatus, ResidencyStatus, TransactionType, PaymentMethod, VerificationStatus,
)


def _totals(student):
    return student.total_biaya, student.terbayar, student.tunggakan


# =========================================================
# SISWA & RINCIAN BIAYA
# =========================================================
def test_create_student_with_catalog_items(repo, make_student):
    seragam = repo.save_catalog_entry('Seragam Sekolah', 850000)
    buku = repo.save_catalog_entry('Buku Paket', 650000)

    student = make_student(catalog_ids=[seragam.id, buku.id])

    assert student.status == ResidencyStatus.MUKIM
    assert [i.nama_biaya for i in student.rincian_biaya] == ['Seragam Sekolah', 'Buku Paket']
    assert all(i.status == PaymentStatus.BELUM_LUNAS for i in student.rincian_biaya)
    assert _totals(student) == (1500000, 0, 1500000)


def test_create_student_rejects_bad_year_and_duplicate_nis(repo, make_student):
    with pytest.raises(InvalidAcademicYear):
        make_student(tahun_ajaran='2024-2025')
    db.session.rollback()

    make_student(nis='2024001')
    with pytest.raises(FeeValidationError):
        make_student(nis='2024001', nama='Orang Lain')


def test_update_student_keeps_own_nis(repo, make_student):
    student = make_student(nis='2024001')
    repo.update_student(student, {'nama': 'Ahmad F.', 'nis': '2024001', 'kelas': 'XI TKJ 1',
                                  'status': 'NON_MUKIM', 'tahun_ajaran': '2025/2026'})
    assert student.nama == 'Ahmad F.'
    assert student.status == ResidencyStatus.NON_MUKIM
    assert student.tahun_ajaran == '2025/2026'


def test_fee_item_changes_rederive_totals(repo, make_student):
    student = make_student()
    gedung = repo.add_fee_item(student, 'Uang Gedung', 1000000)
    repo.add_fee_item(student, 'Seragam', 500000, 500000)
    assert _totals(student) == (1500000, 500000, 1000000)

    repo.update_fee_item(gedung, 'Uang Gedung', 1000000, 1000000)
    assert gedung.status == PaymentStatus.LUNAS
    assert _totals(student) == (1500000, 1500000, 0)

    repo.delete_fee_item(gedung)
    assert _totals(student) == (500000, 500000, 0)
    assert BiayaItem.query.count() == 1


def test_fee_item_validation(repo, make_student):
    student = make_student()
    with pytest.raises(FeeValidationError):
        repo.add_fee_item(student, 'Uang Gedung', 100000, 200000)
    with pytest.raises(FeeValidationError):
        repo.add_fee_item(student, '  ', 100000)
    assert student.rincian_biaya == []


def test_recalculate_student_is_idempotent(repo, make_student):
    student = make_student()
    repo.add_fee_item(student, 'Uang Gedung', 1000000)
    first = repo.recalculate_student(student)
    second = repo.recalculate_student(student)
    assert first == second
    assert _totals(student) == (1000000, 0, 1000000)


def test_delete_student_keeps_cash_book(repo, make_student):
    student = make_student()
    repo.add_fee_item(student, 'Uang Gedung', 1000000)
    repo.record_spp_payment(student, '07', 600000)
    repo.add_transaction(TransactionType.PEMASUKAN, 'Pembayaran Biaya Sekolah', 200000, student=student)

    repo.delete_student(student)

    assert Student.query.count() == 0
    assert BiayaItem.query.count() == 0
    assert SPPBulanan.query.count() == 0
    transactions = Transaction.query.all()
    assert len(transactions) == 2
    assert all(t.siswa_id is None for t in transactions)
    assert {t.nama_siswa for t in transactions} == {'Ahmad Fauzan'}


def test_find_student(repo, make_student):
    make_student(nis='2024001', nama='Ahmad Fauzan', nisn='0081234501')
    make_student(nis='2024002', nama='Siti Aminah', nisn='0081234502')

    assert repo.find_student('2024002').nama == 'Siti Aminah'
    assert repo.find_student('0081234501').nama == 'Ahmad Fauzan'
    assert repo.find_student('aminah').nis == '2024002'
    assert repo.find_student('tidak ada') is None
    assert repo.find_student('') is None


def test_list_students_filters(repo, make_student):
    make_student(nis='2024001', kelas='X TKJ 1')
    make_student(nis='2024002', nama='Siti Aminah', kelas='XI AK 2', status='NON_MUKIM')
    assert [s.nis for s in repo.list_students(kelas='XI AK 2')] == ['2024002']
    assert [s.nis for s in repo.list_students(status='Mukim')] == ['2024001']


# =========================================================
# SPP / INFAQ BULANAN
# =========================================================
def test_default_rates_come_from_config(repo):
    assert repo.get_rates() == (600000, 400000)
    repo.set_rates(650000, 450000)
    assert repo.get_rates() == (650000, 450000)
    with pytest.raises(FeeValidationError):
        repo.set_rates(0, 450000)


def test_spp_payment_creates_record_and_transaction(repo, make_student):
    student = make_student()
    record = repo.record_spp_payment(student, '08', 300000, tanggal_bayar=date(2024, 8, 12))

    assert record.jumlah_spp == 600000
    assert record.tunggakan == 300000
    assert record.status_pembayaran == PaymentStatus.SEBAGIAN

    trx = Transaction.query.one()
    assert trx.tipe == TransactionType.PEMASUKAN
    assert trx.kategori == 'SPP / Infaq Bulanan'
    assert trx.jenis_pembayaran == 'SPP Mukim - Agustus 2024/2025'
    assert trx.spp_record is record
    assert trx.nis == student.nis

    repo.record_spp_payment(student, '08', 300000)
    assert record.status_pembayaran == PaymentStatus.LUNAS
    assert SPPBulanan.query.count() == 1

    with pytest.raises(DuplicateSPPError):
        repo.record_spp_payment(student, '08', 1000)


def test_spp_payment_overpayment_is_rejected(repo, make_student):
    student = make_student(status='NON_MUKIM')
    with pytest.raises(OverpaymentError):
        repo.record_spp_payment(student, '07', 500000)
    db.session.rollback()
    assert SPPBulanan.query.count() == 0
    assert Transaction.query.count() == 0


def test_spp_payment_with_custom_bill(repo, make_student):
    student = make_student()
    record = repo.record_spp_payment(student, '07', 250000, jumlah_spp=500000)
    assert record.jumlah_spp == 500000
    assert record.status_pembayaran == PaymentStatus.SEBAGIAN


def test_month_slots_reflect_records(repo, make_student):
    student = make_student()
    repo.record_spp_payment(student, '07', 600000)
    slots = repo.month_slots(student)
    assert slots[0].status == PaymentStatus.LUNAS
    assert slots[1].status == PaymentStatus.BELUM_LUNAS

    overview = repo.spp_overview([student])
    assert overview[0]['totals'].terbayar == 600000
    assert overview[0]['jumlah_pembayaran'] == 1
    assert overview[0]['nominal_per_bulan'] == 600000


def test_update_spp_record_month_collision(repo, make_student):
    student = make_student()
    repo.record_spp_payment(student, '07', 600000)
    agustus = repo.record_spp_payment(student, '08', 100000)

    with pytest.raises(DuplicateSPPError):
        repo.update_spp_record(agustus, '07', 600000, 100000)
    db.session.rollback()

    repo.update_spp_record(agustus, '09', 600000, 600000, keterangan='Koreksi bulan')
    assert agustus.bulan == '09'
    assert agustus.status_pembayaran == PaymentStatus.LUNAS


def test_delete_spp_record_keeps_transaction(repo, make_student):
    student = make_student()
    record = repo.record_spp_payment(student, '07', 600000)
    repo.delete_spp_record(record)
    assert SPPBulanan.query.count() == 0
    assert Transaction.query.one().spp_bulanan_id is None


# =========================================================
# TRANSAKSI & PEMBAYARAN WALI MURID
# =========================================================
def test_income_linked_to_student_is_allocated_and_reverted(repo, make_student):
    student = make_student()
    gedung = repo.add_fee_item(student, 'Uang Gedung', 1000000)
    seragam = repo.add_fee_item(student, 'Seragam', 500000)

    trx = repo.add_transaction(TransactionType.PEMASUKAN, 'Pembayaran Biaya Sekolah', 1200000, student=student)
    assert gedung.terbayar == 1000000
    assert seragam.terbayar == 200000
    assert _totals(student) == (1500000, 1200000, 300000)
    assert PaymentAllocation.query.count() == 2

    repo.delete_transaction(trx)
    assert gedung.terbayar == 0
    assert seragam.terbayar == 0
    assert _totals(student) == (1500000, 0, 1500000)
    assert PaymentAllocation.query.count() == 0


def test_income_for_student_without_items_updates_aggregates(repo, make_student):
    student = make_student()
    student.total_biaya, student.terbayar, student.tunggakan = 1000000, 700000, 300000
    db.session.commit()

    trx = repo.add_transaction(TransactionType.PEMASUKAN, 'Pelunasan', 100000, student=student)
    assert (student.terbayar, student.tunggakan) == (800000, 200000)

    lebih = repo.add_transaction(TransactionType.PEMASUKAN, 'Pelunasan', 500000, student=student)
    assert (student.terbayar, student.tunggakan) == (1300000, 0)
    assert lebih.kelebihan_bayar == 300000

    repo.delete_transaction(lebih)
    assert (student.terbayar, student.tunggakan) == (800000, 200000)
    repo.delete_transaction(trx)
    assert (student.terbayar, student.tunggakan) == (700000, 300000)


def test_expense_ignores_student(repo, make_student):
    student = make_student()
    trx = repo.add_transaction(TransactionType.PENGELUARAN, 'Listrik', 250000, student=student)
    assert trx.siswa_id is None
    repo.delete_transaction(trx)
    assert Transaction.query.count() == 0


@pytest.mark.filterwarnings("error::sqlalchemy.exc.SAWarning")
def test_parent_payment_is_verified_with_receipt(repo, make_student):
    student = make_student()
    repo.add_fee_item(student, 'Uang Gedung', 1000000)

    payment = repo.record_parent_payment(student, 400000, PaymentMethod.BCA, 'Bapak Hasan')

    assert payment.status == VerificationStatus.VERIFIED
    assert payment.verified_by == 'Sistem'
    assert payment.nomor_rekening == '1234567890'
    assert re.match(r'^KWT/\d{8}/\d{4}$', payment.nomor_kwitansi)
    assert _totals(student) == (1000000, 400000, 600000)

    trx = payment.transaction
    assert trx.kategori == 'Pembayaran Biaya Sekolah'
    assert trx.keterangan == 'Pembayaran dari Bapak Hasan untuk siswa Ahmad Fauzan (X TKJ 1) via BCA'
    assert [a.jumlah for a in trx.allocations] == [400000]


def test_parent_overpayment_is_clamped_and_recorded(repo, make_student):
    student = make_student()
    repo.add_fee_item(student, 'Uang Gedung', 300000)

    payment = repo.record_parent_payment(student, 500000, 'DANA')

    assert payment.jumlah_bayar == 500000
    assert _totals(student) == (300000, 300000, 0)
    trx = payment.transaction
    assert trx.jumlah == 500000
    assert trx.kelebihan_bayar == 200000
    assert [a.jumlah for a in trx.allocations] == [300000]
    assert trx.keterangan.endswith('(kelebihan bayar Rp 200.000)')


def test_parent_overpayment_without_items_adds_full_amount(repo, make_student):
    student = make_student()
    student.total_biaya, student.terbayar, student.tunggakan = 1000000, 700000, 300000
    db.session.commit()

    payment = repo.record_parent_payment(student, 500000, PaymentMethod.BCA)
    assert (student.terbayar, student.tunggakan) == (1200000, 0)

    repo.delete_transaction(payment.transaction)
    assert (student.terbayar, student.tunggakan) == (700000, 300000)


def test_deleting_payment_transaction_cancels_receipt(repo, make_student):
    student = make_student()
    repo.add_fee_item(student, 'Uang Gedung', 1000000)
    payment = repo.record_parent_payment(student, 400000, PaymentMethod.BRI)

    repo.delete_transaction(payment.transaction)

    assert _totals(student) == (1000000, 0, 1000000)
    assert Transaction.query.count() == 0
    assert PaymentAllocation.query.count() == 0
    cancelled = Payment.query.one()
    assert cancelled.status == VerificationStatus.REJECTED
    assert cancelled.transaction is None


# =========================================================
# IMPORT & PENGATURAN
# =========================================================
def test_import_students(repo, make_student):
    make_student(nis='2024001')
    rows = [
        (2, {'nama': 'Siti Aminah', 'kelas': 'X TKJ 1', 'nis': '2024002', 'status': 'Non Mukim',
             'tahun_ajaran': '2024/2025', 'total_biaya': '1.500.000', 'terbayar': '500000'}),
        (3, {'nama': 'Duplikat', 'kelas': 'X TKJ 1', 'nis': '2024001', 'status': 'Mukim', 'tahun_ajaran': '2024/2025'}),
        (4, {'nama': 'Tahun Rusak', 'kelas': 'X TKJ 1', 'nis': '2024003', 'status': 'Mukim', 'tahun_ajaran': '2024'}),
        (5, {'nama': 'Tanpa NIS', 'kelas': 'X TKJ 1', 'nis': '', 'status': 'Mukim', 'tahun_ajaran': '2024/2025'}),
    ]

    created, skipped, errors = repo.import_students(rows)

    assert (created, skipped) == (1, 3)
    assert [e.split(':')[0] for e in errors] == ['Baris 3', 'Baris 4', 'Baris 5']
    siti = Student.query.filter_by(nis='2024002').one()
    assert siti.status == ResidencyStatus.NON_MUKIM
    assert _totals(siti) == (1500000, 500000, 1000000)


def test_profiles_fall_back_to_defaults(repo):
    profil = repo.school_profile()
    assert profil['nama_sekolah'] == 'SMK AL-ISHLAH CISAUK'

    repo.save_profile('profil_sekolah', profil, {'npsn': '12345678', 'tidak_dikenal': 'x'})
    assert repo.school_profile()['npsn'] == '12345678'
    assert repo.admin_profile()['jabatan'] == 'Kepala Tata Usaha'
