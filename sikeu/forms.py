from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired, FileAllowed

from wtforms import (
    StringField,
    PasswordField,
    BooleanField,
    SelectField,
    SelectMultipleField,
    DateField,
    TextAreaField,
    IntegerField,
    RadioField,
    SubmitField,
)

from wtforms.validators import (
    DataRequired,
    Optional,
    Email,
    Length,
    NumberRange,
    ValidationError,
)

from sikeu.errors import InvalidAcademicYear
from sikeu.models import ResidencyStatus, TransactionType, PaymentMethod
from sikeu.services.spp import NAMA_BULAN, ACADEMIC_MONTH_ORDER, parse_tahun_ajaran


# Urut Juli -> Juni mengikuti tahun ajaran
BULAN_CHOICES = [(kode, NAMA_BULAN[kode]) for kode, _ in ACADEMIC_MONTH_ORDER]


def validate_tahun_ajaran(form, field):
    try:
        parse_tahun_ajaran(field.data)
    except InvalidAcademicYear as exc:
        raise ValidationError(str(exc))


class LoginForm(FlaskForm):
    username = StringField('Username / Email', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])
    remember = BooleanField('Ingat Saya')
    submit = SubmitField('Login')


class StudentForm(FlaskForm):
    # Dipakai untuk tambah & edit siswa
    nama = StringField('Nama Lengkap Siswa', validators=[DataRequired(), Length(max=100)])
    nis = StringField('NIS', validators=[DataRequired(), Length(max=20)])
    nisn = StringField('NISN', validators=[Optional(), Length(max=20)])
    kelas = StringField('Kelas (Cth: X TKJ 1)', validators=[DataRequired(), Length(max=30)])
    alamat = TextAreaField('Alamat Lengkap', validators=[Optional()])
    nama_orang_tua = StringField('Nama Orang Tua/Wali', validators=[Optional(), Length(max=100)])
    status = SelectField('Status', choices=[(s.name, s.value) for s in ResidencyStatus], validators=[DataRequired()])
    tahun_ajaran = StringField('Tahun Ajaran (Cth: 2024/2025)', validators=[DataRequired(), validate_tahun_ajaran])

    # Hanya dipakai saat tambah siswa: item awal dari master biaya administrasi
    catalog_ids = SelectMultipleField('Biaya Administrasi', coerce=int, validators=[Optional()])

    submit = SubmitField('Simpan Data Siswa')


class BiayaItemForm(FlaskForm):
    nama_biaya = StringField('Nama Biaya', validators=[DataRequired(message='Nama biaya harus diisi.')])
    jumlah = IntegerField('Jumlah (Rp)', validators=[
        DataRequired(), NumberRange(min=1, message='Jumlah biaya harus berupa angka positif.')
    ])
    terbayar = IntegerField('Sudah Terbayar (Rp)', default=0, validators=[
        Optional(), NumberRange(min=0, message='Jumlah terbayar harus berupa angka positif atau 0.')
    ])
    submit = SubmitField('Simpan Item')

    def validate_terbayar(self, field):
        if field.data and self.jumlah.data and field.data > self.jumlah.data:
            raise ValidationError('Jumlah terbayar tidak boleh melebihi jumlah biaya.')


class BiayaAdministrasiForm(FlaskForm):
    nama = StringField('Nama Biaya (Cth: Seragam Sekolah)', validators=[DataRequired()])
    jumlah = IntegerField('Nominal (Rp)', validators=[DataRequired(), NumberRange(min=1)])
    keterangan = StringField('Keterangan', validators=[Optional(), Length(max=255)])
    submit = SubmitField('Simpan Biaya')


class SPPPaymentForm(FlaskForm):
    bulan = SelectField('Bulan', choices=BULAN_CHOICES, validators=[DataRequired()])
    nominal = IntegerField('Nominal Dibayar (Rp)', validators=[
        DataRequired(), NumberRange(min=1, message='Nominal harus berupa angka positif.')
    ])
    # Kosong = pakai nominal standar sesuai status siswa
    jumlah_spp = IntegerField('Tagihan Bulan Ini (Rp)', validators=[Optional(), NumberRange(min=1)])
    tanggal_bayar = DateField('Tanggal Bayar', format='%Y-%m-%d', validators=[Optional()])
    keterangan = StringField('Keterangan', validators=[Optional(), Length(max=255)])
    submit = SubmitField('Simpan Pembayaran')


class SPPEditForm(FlaskForm):
    bulan = SelectField('Bulan', choices=BULAN_CHOICES, validators=[DataRequired()])
    jumlah_spp = IntegerField('Tagihan (Rp)', validators=[DataRequired(), NumberRange(min=1)])
    terbayar = IntegerField('Terbayar (Rp)', default=0, validators=[Optional(), NumberRange(min=0)])
    tanggal_bayar = DateField('Tanggal Bayar', format='%Y-%m-%d', validators=[Optional()])
    keterangan = StringField('Keterangan', validators=[Optional(), Length(max=255)])
    submit = SubmitField('Perbarui')

    def validate_terbayar(self, field):
        if field.data and self.jumlah_spp.data and field.data > self.jumlah_spp.data:
            raise ValidationError('Jumlah terbayar tidak boleh melebihi tagihan.')


class TransactionForm(FlaskForm):
    tipe = SelectField('Jenis', choices=[(t.name, t.value) for t in TransactionType], validators=[DataRequired()])
    kategori = StringField('Kategori (Cth: Biaya Operasional)', validators=[DataRequired(), Length(max=100)])
    jumlah = IntegerField('Jumlah (Rp)', validators=[DataRequired(), NumberRange(min=1)])
    tanggal = DateField('Tanggal', format='%Y-%m-%d', validators=[Optional()])
    keterangan = TextAreaField('Keterangan', validators=[Optional(), Length(max=255)])
    siswa_id = SelectField('Siswa (opsional, untuk pemasukan)', coerce=int, default=0)  # Pilihan diisi di admin.py
    submit = SubmitField('Simpan Transaksi')


class ParentPaymentForm(FlaskForm):
    nama_orang_tua = StringField('Nama Orang Tua/Wali', validators=[DataRequired()])
    metode = RadioField('Metode Pembayaran', choices=[(m.name, m.value) for m in PaymentMethod],
                        validators=[DataRequired(message='Pilih metode pembayaran.')])
    jumlah = IntegerField('Jumlah Bayar (Rp)', validators=[
        DataRequired(), NumberRange(min=1, message='Jumlah pembayaran harus berupa angka positif.')
    ])
    item_ids = SelectMultipleField('Bayar untuk item', coerce=int, validators=[Optional()])
    submit = SubmitField('Konfirmasi Pembayaran')


class NominalInfaqForm(FlaskForm):
    nominal_mukim = IntegerField('Nominal Infaq Mukim (Rp)', validators=[DataRequired(), NumberRange(min=1)])
    nominal_non_mukim = IntegerField('Nominal Infaq Non Mukim (Rp)', validators=[DataRequired(), NumberRange(min=1)])
    submit = SubmitField('Simpan Nominal')


class SchoolProfileForm(FlaskForm):
    nama_sekolah = StringField('Nama Sekolah', validators=[DataRequired()])
    npsn = StringField('NPSN', validators=[Optional()])
    alamat = TextAreaField('Alamat', validators=[Optional()])
    no_telepon = StringField('No. Telepon', validators=[Optional()])
    email = StringField('Email', validators=[Optional(), Email()])
    website = StringField('Website', validators=[Optional()])
    kepala_sekolah = StringField('Kepala Sekolah', validators=[Optional()])
    kepala_tata_usaha = StringField('Kepala Tata Usaha', validators=[Optional()])
    bendahara = StringField('Bendahara', validators=[Optional()])
    submit = SubmitField('Simpan Profil Sekolah')


class AdminProfileForm(FlaskForm):
    nama_lengkap = StringField('Nama Lengkap', validators=[DataRequired()])
    jabatan = StringField('Jabatan', validators=[Optional()])
    nip = StringField('NIP', validators=[Optional()])
    no_telepon = StringField('No. Telepon', validators=[Optional()])
    email = StringField('Email', validators=[Optional(), Email()])
    submit = SubmitField('Simpan Profil Admin')


class ImportForm(FlaskForm):
    file = FileField('File Data Siswa (CSV/XLSX)', validators=[
        FileRequired(message='Pilih file terlebih dahulu.'),
        FileAllowed(['csv', 'xlsx'], 'Format file harus CSV atau XLSX.'),
    ])
    submit = SubmitField('Import')
