from datetime import date, datetime
from sikeu import create_app
from sikeu.extensions import db
from sikeu.models import (
    User, Student, BiayaItem, BiayaAdministrasi, SPPBulanan, Transaction,
    ResidencyStatus, TransactionType, AppConfig
)
from sikeu.repository import PROFIL_SEKOLAH_DEFAULTS, PROFIL_ADMIN_DEFAULTS, RATE_KEYS
from sikeu.services.fee_items import refresh_item, apply_totals
from sikeu.services.spp import refresh_record, NAMA_BULAN

app = create_app()

with app.app_context():
    print("🧹 Menghapus database lama...")
    db.drop_all()

    print("🏗️ Membuat tabel database baru...")
    db.create_all()

    # ============================================
    # 1. PENGATURAN (NOMINAL INFAQ & PROFIL)
    # ============================================
    print("⚙️  Creating Master Data...")

    db.session.add_all([
        AppConfig(key=RATE_KEYS['mukim'], value=str(app.config['DEFAULT_NOMINAL_MUKIM']),
                  description="Nominal infaq bulanan siswa Mukim"),
        AppConfig(key=RATE_KEYS['non_mukim'], value=str(app.config['DEFAULT_NOMINAL_NON_MUKIM']),
                  description="Nominal infaq bulanan siswa Non Mukim"),
    ])
    for field, value in PROFIL_SEKOLAH_DEFAULTS.items():
        db.session.add(AppConfig(key=f"profil_sekolah.{field}", value=value))
    for field, value in PROFIL_ADMIN_DEFAULTS.items():
        db.session.add(AppConfig(key=f"profil_admin.{field}", value=value))

    # Master biaya administrasi
    seragam = BiayaAdministrasi(nama="Seragam Sekolah", jumlah=850000, keterangan="4 stel seragam")
    buku = BiayaAdministrasi(nama="Buku Paket", jumlah=650000, keterangan="Satu tahun ajaran")
    gedung = BiayaAdministrasi(nama="Uang Gedung", jumlah=2500000, keterangan="Sekali selama sekolah")
    kegiatan = BiayaAdministrasi(nama="Kegiatan Tahunan", jumlah=500000)
    db.session.add_all([seragam, buku, gedung, kegiatan])
    db.session.commit()

    # ============================================
    # 2. ADMIN
    # ============================================
    print("👤 Creating Admin...")

    admin_user = User(
        username='admin',
        nama=PROFIL_ADMIN_DEFAULTS['nama_lengkap'],
        email='admin@smkalishlah.sch.id',
        role='admin',
    )
    admin_user.set_password('admin123')
    db.session.add(admin_user)

    # ============================================
    # 3. SISWA & RINCIAN BIAYA
    # ============================================
    print("👤 Creating Students...")

    def add_student(nama, kelas, nis, nisn, status, nama_orang_tua, items):
        student = Student(
            nama=nama, kelas=kelas, nis=nis, nisn=nisn, status=status,
            nama_orang_tua=nama_orang_tua, alamat="Cisauk, Tangerang", tahun_ajaran="2024/2025",
        )
        for nama_biaya, jumlah, terbayar in items:
            item = BiayaItem(nama_biaya=nama_biaya, jumlah=jumlah, terbayar=terbayar)
            refresh_item(item)
            student.rincian_biaya.append(item)
        apply_totals(student)
        db.session.add(student)
        return student

    ahmad = add_student("Ahmad Fauzan", "X TKJ 1", "2024001", "0081234501", ResidencyStatus.MUKIM, "Bapak Hasan",
                        [("Uang Gedung", 2500000, 1500000), ("Seragam Sekolah", 850000, 850000)])
    siti = add_student("Siti Aminah", "X TKJ 1", "2024002", "0081234502", ResidencyStatus.NON_MUKIM, "Ibu Fatimah",
                       [("Uang Gedung", 2500000, 2500000), ("Buku Paket", 650000, 650000)])
    rizky = add_student("Muhammad Rizky", "XI AK 2", "2024003", "0081234503", ResidencyStatus.NON_MUKIM, "Bapak Usman",
                        [("Buku Paket", 650000, 0), ("Kegiatan Tahunan", 500000, 0)])
    db.session.commit()

    # ============================================
    # 4. INFAQ BULANAN & TRANSAKSI
    # ============================================
    print("💰 Creating SPP & Transactions...")

    for student, bulan, jumlah_spp, terbayar, tanggal in [
        (ahmad, '07', 600000, 600000, date(2024, 7, 10)),
        (ahmad, '08', 600000, 300000, date(2024, 8, 12)),
        (siti, '07', 400000, 400000, date(2024, 7, 8)),
    ]:
        record = SPPBulanan(siswa_id=student.id, bulan=bulan, tahun_ajaran=student.tahun_ajaran,
                            jumlah_spp=jumlah_spp, terbayar=terbayar, tanggal_bayar=tanggal)
        refresh_record(record)
        db.session.add(record)
        db.session.add(Transaction(
            tipe=TransactionType.PEMASUKAN, kategori="SPP / Infaq Bulanan", jumlah=terbayar,
            tanggal=tanggal, waktu=datetime.now().time(),
            jenis_pembayaran=f"SPP {student.status.value} - {NAMA_BULAN[bulan]} {student.tahun_ajaran}",
            siswa_id=student.id, nama_siswa=student.nama, nis=student.nis, kelas=student.kelas,
            spp_record=record,
        ))

    db.session.add(Transaction(
        tipe=TransactionType.PENGELUARAN, kategori="Biaya Operasional", jumlah=750000,
        tanggal=date(2024, 8, 1), jenis_pembayaran="Biaya Operasional", keterangan="Listrik & internet",
    ))

    # Final Commit
    db.session.commit()

    print("\n✅ Database Seeded Successfully!")
    print("   - Admin: admin / admin123")
    print(f"   - Cek tagihan wali murid: NIS {ahmad.nis} / {siti.nis} / {rizky.nis}")
