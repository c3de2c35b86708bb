"""initial finance schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


ENUMS = {
    'residencystatus': ('MUKIM', 'NON_MUKIM'),
    'paymentstatus': ('LUNAS', 'SEBAGIAN', 'BELUM_LUNAS'),
    'transactiontype': ('PEMASUKAN', 'PENGELUARAN'),
    'paymentmethod': ('BCA', 'BRI', 'DANA'),
    'verificationstatus': ('PENDING', 'VERIFIED', 'REJECTED'),
}


def _enum(name):
    # Di PostgreSQL tipe enum dibuat sekali di awal upgrade(), bukan per tabel
    values = ENUMS[name]
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), 'postgresql'
    )


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name, values in ENUMS.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'app_configs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=50), nullable=False),
        sa.Column('value', sa.String(length=255), nullable=True),
        sa.Column('description', sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key')
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('nama', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=120), nullable=True),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nama', sa.String(length=100), nullable=False),
        sa.Column('kelas', sa.String(length=30), nullable=False),
        sa.Column('nis', sa.String(length=20), nullable=False),
        sa.Column('nisn', sa.String(length=20), nullable=True),
        sa.Column('alamat', sa.Text(), nullable=True),
        sa.Column('nama_orang_tua', sa.String(length=100), nullable=True),
        sa.Column('status', _enum('residencystatus'), nullable=False),
        sa.Column('tahun_ajaran', sa.String(length=9), nullable=False),
        sa.Column('total_biaya', sa.Integer(), nullable=False),
        sa.Column('terbayar', sa.Integer(), nullable=False),
        sa.Column('tunggakan', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nis')
    )
    op.create_index(op.f('ix_students_kelas'), 'students', ['kelas'], unique=False)
    op.create_index(op.f('ix_students_nisn'), 'students', ['nisn'], unique=False)
    op.create_index(op.f('ix_students_tahun_ajaran'), 'students', ['tahun_ajaran'], unique=False)

    op.create_table(
        'biaya_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('siswa_id', sa.Integer(), nullable=False),
        sa.Column('nama_biaya', sa.String(length=100), nullable=False),
        sa.Column('jumlah', sa.Integer(), nullable=False),
        sa.Column('terbayar', sa.Integer(), nullable=False),
        sa.Column('tunggakan', sa.Integer(), nullable=False),
        sa.Column('status', _enum('paymentstatus'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['siswa_id'], ['students.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'biaya_administrasi',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nama', sa.String(length=100), nullable=False),
        sa.Column('jumlah', sa.Integer(), nullable=False),
        sa.Column('keterangan', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'spp_bulanan',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('siswa_id', sa.Integer(), nullable=False),
        sa.Column('bulan', sa.String(length=2), nullable=False),
        sa.Column('tahun_ajaran', sa.String(length=9), nullable=False),
        sa.Column('jumlah_spp', sa.Integer(), nullable=False),
        sa.Column('terbayar', sa.Integer(), nullable=False),
        sa.Column('tunggakan', sa.Integer(), nullable=False),
        sa.Column('status_pembayaran', _enum('paymentstatus'), nullable=False),
        sa.Column('tanggal_bayar', sa.Date(), nullable=True),
        sa.Column('keterangan', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['siswa_id'], ['students.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('siswa_id', 'bulan', 'tahun_ajaran', name='uq_spp_siswa_bulan_tahun')
    )

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('siswa_id', sa.Integer(), nullable=True),
        sa.Column('nama_siswa', sa.String(length=100), nullable=True),
        sa.Column('nis', sa.String(length=20), nullable=True),
        sa.Column('kelas', sa.String(length=30), nullable=True),
        sa.Column('nama_orang_tua', sa.String(length=100), nullable=True),
        sa.Column('jumlah_bayar', sa.Integer(), nullable=False),
        sa.Column('metode_pembayaran', _enum('paymentmethod'), nullable=False),
        sa.Column('nomor_rekening', sa.String(length=30), nullable=True),
        sa.Column('tanggal_pembayaran', sa.Date(), nullable=True),
        sa.Column('waktu_pembayaran', sa.Time(), nullable=True),
        sa.Column('status', _enum('verificationstatus'), nullable=True),
        sa.Column('nomor_kwitansi', sa.String(length=30), nullable=False),
        sa.Column('verified_by', sa.String(length=50), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['siswa_id'], ['students.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nomor_kwitansi')
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tipe', _enum('transactiontype'), nullable=False),
        sa.Column('kategori', sa.String(length=100), nullable=True),
        sa.Column('jumlah', sa.Integer(), nullable=False),
        sa.Column('tanggal', sa.Date(), nullable=True),
        sa.Column('waktu', sa.Time(), nullable=True),
        sa.Column('jenis_pembayaran', sa.String(length=150), nullable=True),
        sa.Column('keterangan', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=10), nullable=True),
        sa.Column('kelebihan_bayar', sa.Integer(), server_default='0', nullable=False),
        sa.Column('siswa_id', sa.Integer(), nullable=True),
        sa.Column('nama_siswa', sa.String(length=100), nullable=True),
        sa.Column('nis', sa.String(length=20), nullable=True),
        sa.Column('kelas', sa.String(length=30), nullable=True),
        sa.Column('spp_bulanan_id', sa.Integer(), nullable=True),
        sa.Column('payment_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['siswa_id'], ['students.id']),
        sa.ForeignKeyConstraint(['spp_bulanan_id'], ['spp_bulanan.id']),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transactions_tanggal'), 'transactions', ['tanggal'], unique=False)

    op.create_table(
        'payment_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('biaya_item_id', sa.Integer(), nullable=True),
        sa.Column('jumlah', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.ForeignKeyConstraint(['biaya_item_id'], ['biaya_items.id']),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('payment_allocations')
    op.drop_index(op.f('ix_transactions_tanggal'), table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('payments')
    op.drop_table('spp_bulanan')
    op.drop_table('biaya_administrasi')
    op.drop_table('biaya_items')
    op.drop_index(op.f('ix_students_tahun_ajaran'), table_name='students')
    op.drop_index(op.f('ix_students_nisn'), table_name='students')
    op.drop_index(op.f('ix_students_kelas'), table_name='students')
    op.drop_table('students')
    op.drop_table('users')
    op.drop_table('app_configs')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name in ENUMS:
            op.execute(f"DROP TYPE IF EXISTS {name}")
