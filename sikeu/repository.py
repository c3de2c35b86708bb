"""
Store keuangan: satu-satunya pintu baca/tulis data siswa, rincian biaya,
SPP bulanan dan transaksi.

Route tidak pernah mengubah total siswa secara langsung; setiap perubahan
rincian biaya atau pembayaran lewat method di sini agar total cache siswa
selalu diturunkan ulang dari rincian biaya.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy import func, or_

from sikeu.extensions import db
from sikeu.errors import FeeValidationError, OverpaymentError, DuplicateSPPError, InvalidAcademicYear
from sikeu.models import (
    AppConfig, Student, BiayaItem, BiayaAdministrasi, SPPBulanan,
    Transaction, Payment, PaymentAllocation,
    ResidencyStatus, TransactionType, PaymentMethod, VerificationStatus,
)
from sikeu.services import fee_items, spp, reconcile, reports
from sikeu.utils.formatting import format_rp
from sikeu.utils.importer import parse_amount
from sikeu.utils.receipts import generate_nomor_kwitansi


RATE_KEYS = {
    'mukim': 'nominal_infaq_mukim',
    'non_mukim': 'nominal_infaq_non_mukim',
}

PROFIL_SEKOLAH_DEFAULTS = {
    'nama_sekolah': 'SMK AL-ISHLAH CISAUK',
    'npsn': '20604285',
    'alamat': 'Jl. Raya Cisauk No. 123, Cisauk, Tangerang',
    'no_telepon': '021-12345678',
    'email': 'info@smkalishlah.sch.id',
    'website': 'www.smkalishlah.sch.id',
    'kepala_sekolah': 'Drs. H. Ahmad Fauzi, M.Pd',
    'kepala_tata_usaha': 'Siti Nurjanah, S.Pd',
    'bendahara': 'Rina Wati, S.E',
}

PROFIL_ADMIN_DEFAULTS = {
    'nama_lengkap': 'Siti Nurjanah, S.Pd',
    'jabatan': 'Kepala Tata Usaha',
    'nip': '197203151998022003',
    'no_telepon': '0812-3456-7890',
    'email': 'siti.nurjanah@smkalishlah.sch.id',
}

STUDENT_FIELDS = ('nama', 'kelas', 'nis', 'nisn', 'alamat', 'nama_orang_tua', 'status', 'tahun_ajaran')


def parse_residency(value):
    if isinstance(value, ResidencyStatus):
        return value
    normalized = (value or '').strip().lower().replace('-', ' ').replace('_', ' ')
    if normalized == 'mukim':
        return ResidencyStatus.MUKIM
    return ResidencyStatus.NON_MUKIM


class FinanceRepository:

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # =========================================================
    # PENGATURAN (AppConfig)
    # =========================================================
    def _get_config(self, key, default=None):
        config = AppConfig.query.filter_by(key=key).first()
        return config.value if config and config.value is not None else default

    def _set_config(self, key, value, description=None):
        config = AppConfig.query.filter_by(key=key).first()
        if config:
            config.value = value
            if description:
                config.description = description
        else:
            self.session.add(AppConfig(key=key, value=value, description=description))

    def get_rates(self):
        mukim = self._get_config(RATE_KEYS['mukim'])
        non_mukim = self._get_config(RATE_KEYS['non_mukim'])
        return spp.NominalInfaq(
            mukim=int(mukim) if mukim else current_app.config['DEFAULT_NOMINAL_MUKIM'],
            non_mukim=int(non_mukim) if non_mukim else current_app.config['DEFAULT_NOMINAL_NON_MUKIM'],
        )

    def set_rates(self, mukim, non_mukim):
        if not mukim or mukim <= 0:
            raise FeeValidationError('Nominal Infaq Mukim harus berupa angka positif.')
        if not non_mukim or non_mukim <= 0:
            raise FeeValidationError('Nominal Infaq Non Mukim harus berupa angka positif.')
        self._set_config(RATE_KEYS['mukim'], str(int(mukim)), 'Nominal infaq bulanan siswa Mukim')
        self._set_config(RATE_KEYS['non_mukim'], str(int(non_mukim)), 'Nominal infaq bulanan siswa Non Mukim')
        self.session.commit()
        current_app.logger.info('Nominal infaq diperbarui: mukim=%s non_mukim=%s', mukim, non_mukim)
        return self.get_rates()

    def get_profile(self, prefix, defaults):
        return {field: self._get_config(f'{prefix}.{field}', default) for field, default in defaults.items()}

    def save_profile(self, prefix, defaults, data):
        for field in defaults:
            if field in data:
                self._set_config(f'{prefix}.{field}', (data[field] or '').strip())
        self.session.commit()

    def school_profile(self):
        return self.get_profile('profil_sekolah', PROFIL_SEKOLAH_DEFAULTS)

    def admin_profile(self):
        return self.get_profile('profil_admin', PROFIL_ADMIN_DEFAULTS)

    # =========================================================
    # SISWA
    # =========================================================
    def all_students(self):
        return Student.query.order_by(Student.nama.asc()).all()

    def list_students(self, kelas=None, tahun_ajaran=None, status=None, search=None, payment_state=None):
        return reports.filter_students(
            self.all_students(), kelas=kelas, tahun_ajaran=tahun_ajaran,
            status=status, search=search, payment_state=payment_state,
        )

    def get_student(self, student_id):
        return self.session.get(Student, student_id)

    def find_student(self, query):
        """Cari siswa untuk halaman wali murid: NIS/NISN persis, lalu nama."""
        keyword = (query or '').strip().lower()
        if not keyword:
            return None

        exact = Student.query.filter(
            or_(func.lower(Student.nis) == keyword, func.lower(Student.nisn) == keyword)
        ).first()
        if exact:
            return exact

        return Student.query.filter(Student.nama.ilike(f'%{keyword}%')).order_by(Student.nama.asc()).first()

    def _validate_student_data(self, data, current_id=None):
        if not (data.get('nama') or '').strip():
            raise FeeValidationError('Nama siswa wajib diisi.')
        if not (data.get('nis') or '').strip():
            raise FeeValidationError('NIS wajib diisi.')
        data['tahun_ajaran'] = spp.normalize_tahun_ajaran(data.get('tahun_ajaran'))
        data['status'] = parse_residency(data.get('status'))

        duplicate = Student.query.filter(Student.nis == data['nis'].strip())
        if current_id is not None:
            duplicate = duplicate.filter(Student.id != current_id)
        if duplicate.first():
            raise FeeValidationError(f"NIS {data['nis']} sudah terdaftar.")
        return data

    def create_student(self, data, catalog_ids=None):
        data = self._validate_student_data(dict(data))
        student = Student(**{field: data.get(field) for field in STUDENT_FIELDS})
        student.nis = student.nis.strip()
        self.session.add(student)

        if catalog_ids:
            self._add_catalog_items(student, catalog_ids)
        fee_items.apply_totals(student)

        self.session.commit()
        current_app.logger.info('Siswa baru %s (%s) ditambahkan', student.nama, student.nis)
        return student

    def update_student(self, student, data):
        data = self._validate_student_data(dict(data), current_id=student.id)
        for field in STUDENT_FIELDS:
            if field in data:
                setattr(student, field, data[field])
        student.nis = student.nis.strip()
        self.session.commit()
        return student

    def delete_student(self, student):
        nama = student.nama
        self.session.delete(student)
        self.session.commit()
        current_app.logger.info('Siswa %s dihapus beserta rincian biaya dan SPP-nya', nama)

    def import_students(self, rows):
        """rows hasil utils.importer.parse_student_rows -> (berhasil, dilewati, errors)."""
        created = 0
        skipped = 0
        errors = []
        seen_nis = set()

        for idx, row in rows:
            nis = (row.get('nis') or '').strip()
            if not nis:
                skipped += 1
                errors.append(f'Baris {idx}: NIS wajib diisi.')
                continue

            if nis in seen_nis or Student.query.filter_by(nis=nis).first():
                skipped += 1
                errors.append(f'Baris {idx}: NIS {nis} sudah terdaftar.')
                continue

            try:
                tahun_ajaran = spp.normalize_tahun_ajaran(row.get('tahun_ajaran'))
            except InvalidAcademicYear as exc:
                skipped += 1
                errors.append(f'Baris {idx}: {exc}')
                continue

            student = Student(
                nama=row.get('nama'),
                kelas=row.get('kelas') or '-',
                nis=nis,
                nisn=row.get('nisn'),
                alamat=row.get('alamat'),
                nama_orang_tua=row.get('nama_orang_tua'),
                status=parse_residency(row.get('status')),
                tahun_ajaran=tahun_ajaran,
            )

            # Template lama membawa total tanpa rincian; simpan sebagai total agregat
            total_biaya = parse_amount(row.get('total_biaya'))
            terbayar = min(parse_amount(row.get('terbayar')), total_biaya)
            student.total_biaya = total_biaya
            student.terbayar = terbayar
            student.tunggakan = max(0, total_biaya - terbayar)

            self.session.add(student)
            seen_nis.add(nis)
            created += 1

        self.session.commit()
        current_app.logger.info('Import siswa selesai: %s berhasil, %s dilewati', created, skipped)
        return created, skipped, errors

    # =========================================================
    # RINCIAN BIAYA
    # =========================================================
    def recalculate_student(self, student):
        for item in student.rincian_biaya:
            fee_items.refresh_item(item)
        return fee_items.apply_totals(student)

    def add_fee_item(self, student, nama_biaya, jumlah, terbayar=0):
        nama_biaya = (nama_biaya or '').strip()
        if not nama_biaya:
            raise FeeValidationError('Nama biaya harus diisi.')
        fee_items.validate_item_amounts(jumlah, terbayar or 0)

        item = BiayaItem(nama_biaya=nama_biaya, jumlah=jumlah, terbayar=terbayar or 0)
        fee_items.refresh_item(item)
        student.rincian_biaya.append(item)
        fee_items.apply_totals(student)
        self.session.commit()
        return item

    def update_fee_item(self, item, nama_biaya, jumlah, terbayar):
        nama_biaya = (nama_biaya or '').strip()
        if not nama_biaya:
            raise FeeValidationError('Nama biaya harus diisi.')
        fee_items.validate_item_amounts(jumlah, terbayar)

        item.nama_biaya = nama_biaya
        item.jumlah = jumlah
        item.terbayar = terbayar
        fee_items.refresh_item(item)
        fee_items.apply_totals(item.student)
        self.session.commit()
        return item

    def delete_fee_item(self, item):
        student = item.student
        student.rincian_biaya.remove(item)
        fee_items.apply_totals(student)
        self.session.commit()

    def _add_catalog_items(self, student, catalog_ids):
        entries = BiayaAdministrasi.query.filter(BiayaAdministrasi.id.in_(catalog_ids)).all()
        for template in fee_items.items_from_catalog(entries):
            item = BiayaItem(**template)
            fee_items.refresh_item(item)
            student.rincian_biaya.append(item)
        return len(entries)

    def add_items_from_catalog(self, student, catalog_ids):
        count = self._add_catalog_items(student, catalog_ids)
        fee_items.apply_totals(student)
        self.session.commit()
        return count

    # =========================================================
    # MASTER BIAYA ADMINISTRASI
    # =========================================================
    def list_catalog(self):
        return BiayaAdministrasi.query.order_by(BiayaAdministrasi.nama.asc()).all()

    def save_catalog_entry(self, nama, jumlah, keterangan='', entry=None):
        if not (nama or '').strip():
            raise FeeValidationError('Nama biaya harus diisi.')
        if not jumlah or jumlah <= 0:
            raise FeeValidationError('Jumlah biaya harus berupa angka positif.')

        if entry is None:
            entry = BiayaAdministrasi()
            self.session.add(entry)
        entry.nama = nama.strip()
        entry.jumlah = jumlah
        entry.keterangan = keterangan
        self.session.commit()
        return entry

    def delete_catalog_entry(self, entry):
        self.session.delete(entry)
        self.session.commit()

    # =========================================================
    # SPP / INFAQ BULANAN
    # =========================================================
    def spp_records_for(self, student):
        return SPPBulanan.query.filter_by(siswa_id=student.id).order_by(SPPBulanan.bulan.asc()).all()

    def month_slots(self, student, rates=None):
        return spp.generate_month_slots(student, self.spp_records_for(student), rates or self.get_rates())

    def spp_overview(self, students):
        rates = self.get_rates()
        rows = []
        for student in students:
            try:
                slots = self.month_slots(student, rates)
            except InvalidAcademicYear:
                current_app.logger.warning('Tahun ajaran siswa %s tidak valid: %r', student.nis, student.tahun_ajaran)
                continue
            rows.append({
                'student': student,
                'slots': slots,
                'totals': spp.summarize_slots(slots),
                'nominal_per_bulan': spp.monthly_rate(student.status, rates),
                'jumlah_pembayaran': sum(1 for s in slots if s.record is not None),
            })
        return rows

    def record_spp_payment(self, student, bulan, nominal, tanggal_bayar=None, keterangan='', jumlah_spp=None):
        if bulan not in spp.NAMA_BULAN:
            raise FeeValidationError('Bulan pembayaran tidak valid.')
        if not nominal or nominal <= 0:
            raise FeeValidationError('Nominal harus berupa angka positif.')
        spp.parse_tahun_ajaran(student.tahun_ajaran)

        tanggal_bayar = tanggal_bayar or datetime.now().date()
        record = SPPBulanan.query.filter_by(
            siswa_id=student.id, bulan=bulan, tahun_ajaran=student.tahun_ajaran
        ).first()

        if record:
            spp.apply_spp_payment(record, nominal)
        else:
            tagihan = jumlah_spp or spp.monthly_rate(student.status, self.get_rates())
            if nominal > tagihan:
                raise OverpaymentError(nominal, tagihan)
            record = SPPBulanan(
                siswa_id=student.id,
                bulan=bulan,
                tahun_ajaran=student.tahun_ajaran,
                jumlah_spp=tagihan,
                terbayar=nominal,
            )
            spp.refresh_record(record)
            self.session.add(record)

        record.tanggal_bayar = tanggal_bayar
        if keterangan:
            record.keterangan = keterangan

        periode = f'{spp.NAMA_BULAN[bulan]} {student.tahun_ajaran}'
        trx = Transaction(
            tipe=TransactionType.PEMASUKAN,
            kategori='SPP / Infaq Bulanan',
            jumlah=nominal,
            tanggal=tanggal_bayar,
            waktu=datetime.now().time(),
            jenis_pembayaran=f'SPP {student.status.value} - {periode}',
            keterangan=keterangan or f'Pembayaran SPP {periode}',
            status='success',
            spp_record=record,
            **self._student_snapshot(student),
        )
        self.session.add(trx)
        self.session.commit()
        current_app.logger.info('SPP %s siswa %s dibayar Rp %s', periode, student.nis, nominal)
        return record

    def update_spp_record(self, record, bulan, jumlah_spp, terbayar, tanggal_bayar=None, keterangan=''):
        if bulan not in spp.NAMA_BULAN:
            raise FeeValidationError('Bulan pembayaran tidak valid.')
        fee_items.validate_item_amounts(jumlah_spp, terbayar)

        if bulan != record.bulan:
            clash = SPPBulanan.query.filter(
                SPPBulanan.siswa_id == record.siswa_id,
                SPPBulanan.bulan == bulan,
                SPPBulanan.tahun_ajaran == record.tahun_ajaran,
                SPPBulanan.id != record.id,
            ).first()
            if clash:
                raise DuplicateSPPError(
                    f'Pembayaran untuk {spp.NAMA_BULAN[bulan]} {record.tahun_ajaran} sudah ada.'
                )

        record.bulan = bulan
        record.jumlah_spp = jumlah_spp
        record.terbayar = terbayar
        record.tanggal_bayar = tanggal_bayar
        record.keterangan = keterangan
        spp.refresh_record(record)
        self.session.commit()
        return record

    def delete_spp_record(self, record):
        # Transaksi terkait tetap ada di buku kas; spp_bulanan_id otomatis di-NULL-kan
        self.session.delete(record)
        self.session.commit()

    # =========================================================
    # TRANSAKSI & PEMBAYARAN
    # =========================================================
    @staticmethod
    def _student_snapshot(student):
        if student is None:
            return {}
        return {
            'student': student,
            'nama_siswa': student.nama,
            'nis': student.nis,
            'kelas': student.kelas,
        }

    def list_transactions(self, tipe=None):
        query = Transaction.query
        if tipe is not None:
            query = query.filter(Transaction.tipe == tipe)
        return query.order_by(Transaction.tanggal.desc(), Transaction.id.desc()).all()

    def _reconcile_income(self, trx, student, item_ids=None):
        """Terapkan pemasukan ke rincian biaya; kelebihan dicatat di transaksi."""
        if not trx.jumlah or trx.jumlah <= 0:
            raise FeeValidationError('Jumlah pembayaran harus berupa angka positif.')

        allocation = reconcile.apply_payment(student, trx.jumlah, item_ids)
        trx.allocations = [PaymentAllocation(jumlah=portion, biaya_item=item) for item, portion in allocation.parts]
        trx.kelebihan_bayar = allocation.unapplied
        if allocation.unapplied > 0:
            trx.keterangan = ' '.join(filter(None, [
                trx.keterangan, f'(kelebihan bayar {format_rp(allocation.unapplied)})',
            ]))[:255]
            current_app.logger.warning('Pembayaran siswa %s melebihi tunggakan, kelebihan Rp %s',
                                       student.nis, allocation.unapplied)
        return allocation

    def add_transaction(self, tipe, kategori, jumlah, tanggal=None, keterangan='', student=None):
        if not (kategori or '').strip():
            raise FeeValidationError('Kategori transaksi wajib diisi.')
        if not jumlah or jumlah <= 0:
            raise FeeValidationError('Jumlah harus berupa angka positif.')
        if tipe != TransactionType.PEMASUKAN:
            student = None

        trx = Transaction(
            tipe=tipe,
            kategori=kategori.strip(),
            jumlah=jumlah,
            tanggal=tanggal or datetime.now().date(),
            waktu=datetime.now().time(),
            jenis_pembayaran=kategori.strip(),
            keterangan=keterangan,
            status='success',
            **self._student_snapshot(student),
        )
        self.session.add(trx)
        if student is not None:
            self._reconcile_income(trx, student)

        self.session.commit()
        current_app.logger.info('Transaksi %s Rp %s dicatat', tipe.value, jumlah)
        return trx

    def delete_transaction(self, trx):
        trx_id = trx.id
        student = trx.student
        if trx.spp_record is not None:
            record = trx.spp_record
            record.terbayar = max(0, (record.terbayar or 0) - trx.jumlah)
            spp.refresh_record(record)
        elif trx.tipe == TransactionType.PEMASUKAN and student is not None:
            if trx.allocations:
                parts = [(a.biaya_item, a.jumlah) for a in trx.allocations if a.biaya_item is not None]
                reconcile.revert_allocation(student, parts)
            elif not student.rincian_biaya:
                reconcile.revert_aggregate(student, trx.jumlah)

        # Kwitansi dari pembayaran yang dibatalkan tidak lagi berlaku
        payment = trx.payment
        if payment is not None:
            payment.status = VerificationStatus.REJECTED
            payment.verified_at = datetime.now()

        self.session.delete(trx)
        self.session.commit()
        current_app.logger.info('Transaksi #%s dihapus dan efek pembayarannya dibatalkan', trx_id)

    def record_parent_payment(self, student, jumlah, metode, nama_orang_tua='', item_ids=None):
        """Pembayaran mandiri wali murid: langsung Verified + kwitansi."""
        if not jumlah or jumlah <= 0:
            raise FeeValidationError('Jumlah pembayaran harus berupa angka positif.')
        metode = metode if isinstance(metode, PaymentMethod) else PaymentMethod[metode]

        now = datetime.now()
        nomor_kwitansi = generate_nomor_kwitansi(now)
        account = current_app.config['PAYMENT_ACCOUNTS'].get(metode.name, {})
        nama_orang_tua = (nama_orang_tua or student.nama_orang_tua or '').strip()

        payment = Payment(
            siswa_id=student.id,
            nama_siswa=student.nama,
            nis=student.nis,
            kelas=student.kelas,
            nama_orang_tua=nama_orang_tua,
            jumlah_bayar=jumlah,
            metode_pembayaran=metode,
            nomor_rekening=account.get('number'),
            tanggal_pembayaran=now.date(),
            waktu_pembayaran=now.time(),
            status=VerificationStatus.VERIFIED,
            nomor_kwitansi=nomor_kwitansi,
            verified_by='Sistem',
            verified_at=now,
        )
        self.session.add(payment)

        trx = Transaction(
            tipe=TransactionType.PEMASUKAN,
            kategori='Pembayaran Biaya Sekolah',
            jumlah=jumlah,
            tanggal=now.date(),
            waktu=now.time(),
            jenis_pembayaran='Pembayaran Biaya Sekolah',
            keterangan=(f'Pembayaran dari {nama_orang_tua or "wali murid"} untuk siswa '
                        f'{student.nama} ({student.kelas}) via {metode.value}'),
            status='success',
            payment=payment,
            **self._student_snapshot(student),
        )
        self.session.add(trx)
        self._reconcile_income(trx, student, item_ids)

        self.session.commit()
        current_app.logger.info('Pembayaran %s siswa %s Rp %s via %s tercatat',
                                payment.nomor_kwitansi, student.nis, jumlah, metode.value)
        return payment
