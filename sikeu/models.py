from sikeu.extensions import db
from datetime import datetime
import enum
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash


# ==========================================
# 0. BASE MODEL
# ==========================================
class BaseModel(db.Model):
    """
    Kelas Abstract yang akan diwarisi oleh semua model.
    Menyediakan timestamp otomatis.
    """
    __abstract__ = True

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ==========================================
# 1. ENUMS
# ==========================================
class ResidencyStatus(enum.Enum):
    MUKIM = "Mukim"
    NON_MUKIM = "Non Mukim"


class PaymentStatus(enum.Enum):
    LUNAS = "Lunas"
    SEBAGIAN = "Sebagian"
    BELUM_LUNAS = "Belum Lunas"


class TransactionType(enum.Enum):
    PEMASUKAN = "Pemasukan"
    PENGELUARAN = "Pengeluaran"


class PaymentMethod(enum.Enum):
    BCA = "BCA"
    BRI = "BRI"
    DANA = "DANA"


class VerificationStatus(enum.Enum):
    PENDING = "Pending"
    VERIFIED = "Verified"
    REJECTED = "Rejected"


# ==========================================
# 2. SYSTEM & CONFIG
# ==========================================
class AppConfig(BaseModel):
    """Menyimpan setting dinamis (Nominal Infaq, Profil Sekolah, Profil Admin)"""
    __tablename__ = 'app_configs'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(50), unique=True, nullable=False)
    value = db.Column(db.String(255))
    description = db.Column(db.String(200))


class User(UserMixin, BaseModel):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    nama = db.Column(db.String(100), default='Administrator')
    email = db.Column(db.String(120), unique=True)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), default='admin', nullable=False)
    last_login = db.Column(db.DateTime)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == 'admin'


# ==========================================
# 3. SISWA & RINCIAN BIAYA
# ==========================================
class Student(BaseModel):
    __tablename__ = 'students'
    id = db.Column(db.Integer, primary_key=True)
    nama = db.Column(db.String(100), nullable=False)
    kelas = db.Column(db.String(30), nullable=False, index=True)
    nis = db.Column(db.String(20), unique=True, nullable=False)
    nisn = db.Column(db.String(20), index=True)
    alamat = db.Column(db.Text)
    nama_orang_tua = db.Column(db.String(100))
    status = db.Column(db.Enum(ResidencyStatus), default=ResidencyStatus.NON_MUKIM, nullable=False)
    tahun_ajaran = db.Column(db.String(9), nullable=False, index=True)  # 2024/2025

    # Total cache (selalu diturunkan dari rincian_biaya oleh repository)
    total_biaya = db.Column(db.Integer, default=0, nullable=False)
    terbayar = db.Column(db.Integer, default=0, nullable=False)
    tunggakan = db.Column(db.Integer, default=0, nullable=False)

    rincian_biaya = db.relationship('BiayaItem', backref='student', lazy=True,
                                    order_by='BiayaItem.id', cascade='all, delete-orphan')
    spp_records = db.relationship('SPPBulanan', backref='student', lazy=True,
                                  order_by='SPPBulanan.bulan', cascade='all, delete-orphan')
    transactions = db.relationship('Transaction', backref='student', lazy=True)
    payments = db.relationship('Payment', backref='student', lazy=True)


class BiayaItem(BaseModel):
    __tablename__ = 'biaya_items'
    id = db.Column(db.Integer, primary_key=True)
    siswa_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False)
    nama_biaya = db.Column(db.String(100), nullable=False)
    jumlah = db.Column(db.Integer, nullable=False)
    terbayar = db.Column(db.Integer, default=0, nullable=False)
    tunggakan = db.Column(db.Integer, default=0, nullable=False)
    status = db.Column(db.Enum(PaymentStatus), default=PaymentStatus.BELUM_LUNAS, nullable=False)

    allocations = db.relationship('PaymentAllocation', backref='biaya_item', lazy=True)


class BiayaAdministrasi(BaseModel):
    """Master katalog jenis biaya (template rincian biaya siswa)"""
    __tablename__ = 'biaya_administrasi'
    id = db.Column(db.Integer, primary_key=True)
    nama = db.Column(db.String(100), nullable=False)
    jumlah = db.Column(db.Integer, nullable=False)
    keterangan = db.Column(db.String(255))


# ==========================================
# 4. SPP / INFAQ BULANAN
# ==========================================
class SPPBulanan(BaseModel):
    __tablename__ = 'spp_bulanan'
    __table_args__ = (
        db.UniqueConstraint('siswa_id', 'bulan', 'tahun_ajaran', name='uq_spp_siswa_bulan_tahun'),
    )
    id = db.Column(db.Integer, primary_key=True)
    siswa_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False)
    bulan = db.Column(db.String(2), nullable=False)  # "07" = Juli
    tahun_ajaran = db.Column(db.String(9), nullable=False)
    jumlah_spp = db.Column(db.Integer, nullable=False)
    terbayar = db.Column(db.Integer, default=0, nullable=False)
    tunggakan = db.Column(db.Integer, default=0, nullable=False)
    status_pembayaran = db.Column(db.Enum(PaymentStatus), default=PaymentStatus.BELUM_LUNAS, nullable=False)
    tanggal_bayar = db.Column(db.Date)
    keterangan = db.Column(db.String(255))

    transactions = db.relationship('Transaction', backref='spp_record', lazy=True)


# ==========================================
# 5. TRANSAKSI & PEMBAYARAN
# ==========================================
class Payment(BaseModel):
    """Pembayaran yang dilaporkan sendiri oleh wali murid (otomatis terverifikasi)"""
    __tablename__ = 'payments'
    id = db.Column(db.Integer, primary_key=True)
    siswa_id = db.Column(db.Integer, db.ForeignKey('students.id'))
    nama_siswa = db.Column(db.String(100))
    nis = db.Column(db.String(20))
    kelas = db.Column(db.String(30))
    nama_orang_tua = db.Column(db.String(100))

    jumlah_bayar = db.Column(db.Integer, nullable=False)
    metode_pembayaran = db.Column(db.Enum(PaymentMethod), nullable=False)
    nomor_rekening = db.Column(db.String(30))
    tanggal_pembayaran = db.Column(db.Date, default=lambda: datetime.now().date())
    waktu_pembayaran = db.Column(db.Time, default=lambda: datetime.now().time())
    status = db.Column(db.Enum(VerificationStatus), default=VerificationStatus.PENDING)

    # Format: KWT/20250115/0042
    nomor_kwitansi = db.Column(db.String(30), unique=True, nullable=False)
    verified_by = db.Column(db.String(50))
    verified_at = db.Column(db.DateTime)

    transaction = db.relationship('Transaction', backref='payment', uselist=False)


class Transaction(BaseModel):
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    tipe = db.Column(db.Enum(TransactionType), default=TransactionType.PEMASUKAN, nullable=False)
    kategori = db.Column(db.String(100))
    jumlah = db.Column(db.Integer, nullable=False)
    tanggal = db.Column(db.Date, default=lambda: datetime.now().date(), index=True)
    waktu = db.Column(db.Time, default=lambda: datetime.now().time())
    jenis_pembayaran = db.Column(db.String(150))
    keterangan = db.Column(db.String(255))
    status = db.Column(db.String(10), default='success')  # success, pending, failed
    kelebihan_bayar = db.Column(db.Integer, default=0, nullable=False)  # sisa yang tidak teralokasi ke rincian

    # Tautan opsional ke siswa (snapshot nama/nis/kelas tetap disimpan)
    siswa_id = db.Column(db.Integer, db.ForeignKey('students.id'))
    nama_siswa = db.Column(db.String(100))
    nis = db.Column(db.String(20))
    kelas = db.Column(db.String(30))

    spp_bulanan_id = db.Column(db.Integer, db.ForeignKey('spp_bulanan.id'))
    payment_id = db.Column(db.Integer, db.ForeignKey('payments.id'))

    allocations = db.relationship('PaymentAllocation', backref='transaction', lazy=True,
                                  cascade='all, delete-orphan')


class PaymentAllocation(BaseModel):
    """Jejak alokasi pemasukan ke item rincian biaya (agar bisa dibatalkan)"""
    __tablename__ = 'payment_allocations'
    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=False)
    biaya_item_id = db.Column(db.Integer, db.ForeignKey('biaya_items.id'))
    jumlah = db.Column(db.Integer, nullable=False)
