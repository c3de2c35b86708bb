import os
from dotenv import load_dotenv

# Muat variabel dari file .env (untuk di laptop)
load_dotenv()


class Config:
    # 1. SECRET KEY
    # Tambahkan 'or ...' sebagai cadangan agar tidak error jika lupa set env
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'kunci-rahasia-default-jika-lupa'

    # 2. DATABASE CONFIGURATION
    db_uri = os.environ.get('DATABASE_URL')

    # Render sering memberikan URL 'postgres://', tapi SQLAlchemy butuh 'postgresql://'
    if db_uri and db_uri.startswith("postgres://"):
        db_uri = db_uri.replace("postgres://", "postgresql://", 1)

    # Jika db_uri kosong (misal di laptop belum setting), otomatis pakai SQLite
    SQLALCHEMY_DATABASE_URI = db_uri or 'sqlite:///keuangan_lokal.db'

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # 3. IDENTITAS SEKOLAH & KANAL PEMBAYARAN
    SCHOOL_NAME = os.environ.get('SCHOOL_NAME') or 'SMK AL-ISHLAH CISAUK'
    WHATSAPP_NUMBER = os.environ.get('WHATSAPP_NUMBER') or '6281234567890'

    PAYMENT_ACCOUNTS = {
        'BCA': {'label': 'Bank BCA', 'number': os.environ.get('REKENING_BCA', '1234567890')},
        'BRI': {'label': 'Bank BRI', 'number': os.environ.get('REKENING_BRI', '0987654321')},
        'DANA': {'label': 'DANA', 'number': os.environ.get('NOMOR_DANA', '081234567890')},
    }

    # 4. NOMINAL INFAQ BULANAN (bisa diubah admin lewat menu Pengaturan)
    DEFAULT_NOMINAL_MUKIM = int(os.environ.get('DEFAULT_NOMINAL_MUKIM', 600000))
    DEFAULT_NOMINAL_NON_MUKIM = int(os.environ.get('DEFAULT_NOMINAL_NON_MUKIM', 400000))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    SECRET_KEY = 'test'
