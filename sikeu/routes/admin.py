from datetime import datetime

from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app, Response
from flask_login import login_required

from sikeu.extensions import db
from sikeu.decorators import admin_required
from sikeu.errors import FinanceError, InvalidAcademicYear
from sikeu.forms import (
    StudentForm, BiayaItemForm, BiayaAdministrasiForm, SPPPaymentForm, SPPEditForm,
    TransactionForm, NominalInfaqForm, SchoolProfileForm, AdminProfileForm, ImportForm,
)
from sikeu.models import (
    Student, BiayaItem, BiayaAdministrasi, SPPBulanan, Transaction, Payment,
    ResidencyStatus, TransactionType,
)
from sikeu.repository import (
    FinanceRepository, PROFIL_SEKOLAH_DEFAULTS, PROFIL_ADMIN_DEFAULTS, STUDENT_FIELDS,
)
from sikeu.services import reports, spp
from sikeu.utils.exports import rekapitulasi_csv, rincian_biaya_csv, spp_csv, student_import_template
from sikeu.utils.importer import iter_upload_rows, parse_student_rows

admin_bp = Blueprint('admin', __name__)

# slug URL -> status siswa untuk halaman SPP per status
SPP_STATUS_SLUGS = {
    'mukim': ResidencyStatus.MUKIM,
    'non-mukim': ResidencyStatus.NON_MUKIM,
}


def _student_filters():
    return {
        'kelas': request.args.get('kelas') or 'all',
        'tahun_ajaran': request.args.get('tahun_ajaran') or 'all',
        'status': request.args.get('status') or 'all',
        'search': (request.args.get('q') or '').strip(),
        'payment_state': request.args.get('pembayaran') or 'all',
    }


def _filter_options(students):
    return {
        'kelas_list': reports.unique_values(students, 'kelas'),
        'tahun_ajaran_list': reports.unique_values(students, 'tahun_ajaran'),
        'status_list': [s.value for s in ResidencyStatus],
    }


def _csv_response(content, filename):
    return Response(content.encode('utf-8-sig'), headers={
        'Content-Type': 'text/csv; charset=utf-8',
        'Content-Disposition': f'attachment; filename={filename}',
    })


def _fail(message, exc):
    """Rollback + flash. Kesalahan bisnis tampil apa adanya, sisanya dicatat di log."""
    db.session.rollback()
    if isinstance(exc, FinanceError):
        current_app.logger.warning('%s: %s', message, exc)
        flash(str(exc), 'danger')
    else:
        current_app.logger.exception(message)
        flash(f'{message}: {exc}', 'danger')


# =========================================================
# DASHBOARD
# =========================================================
@admin_bp.route('/dashboard')
@login_required
@admin_required
def dashboard():
    repo = FinanceRepository()
    students = repo.all_students()
    transactions = repo.list_transactions()
    today = datetime.now().date()

    return render_template(
        'admin/dashboard.html',
        summary=reports.fee_summary(students),
        cashflow=reports.cashflow_summary(transactions, today),
        trend=reports.monthly_trend(transactions, today.year),
        arrears=reports.students_with_arrears(students)[:5],
        recent_transactions=transactions[:5],
    )


# =========================================================
# DATA SISWA
# =========================================================
@admin_bp.route('/siswa')
@login_required
@admin_required
def list_students():
    repo = FinanceRepository()
    filters = _student_filters()
    all_students = repo.all_students()
    students = reports.filter_students(all_students, **filters)

    return render_template(
        'admin/students.html',
        students=students,
        summary=reports.fee_summary(students),
        filters=filters,
        **_filter_options(all_students),
    )


@admin_bp.route('/siswa/tambah', methods=['GET', 'POST'])
@login_required
@admin_required
def add_student():
    repo = FinanceRepository()
    form = StudentForm()
    form.catalog_ids.choices = [(c.id, f'{c.nama} ({c.jumlah})') for c in repo.list_catalog()]

    if form.validate_on_submit():
        try:
            data = {field: getattr(form, field).data for field in STUDENT_FIELDS}
            student = repo.create_student(data, catalog_ids=form.catalog_ids.data)
            flash(f'Siswa {student.nama} berhasil ditambahkan!', 'success')
            return redirect(url_for('admin.student_detail', student_id=student.id))
        except Exception as e:
            _fail('Gagal menyimpan siswa', e)

    return render_template('admin/student_form.html', form=form, student=None)


@admin_bp.route('/siswa/<int:student_id>/edit', methods=['GET', 'POST'])
@login_required
@admin_required
def edit_student(student_id):
    repo = FinanceRepository()
    student = db.get_or_404(Student, student_id)
    form = StudentForm(obj=student)
    form.catalog_ids.choices = []

    if request.method == 'GET':
        form.status.data = student.status.name

    if form.validate_on_submit():
        try:
            data = {field: getattr(form, field).data for field in STUDENT_FIELDS}
            repo.update_student(student, data)
            flash('Data siswa diupdate.', 'success')
            return redirect(url_for('admin.student_detail', student_id=student.id))
        except Exception as e:
            _fail('Gagal update data siswa', e)

    return render_template('admin/student_form.html', form=form, student=student)


@admin_bp.route('/siswa/<int:student_id>/hapus', methods=['POST'])
@login_required
@admin_required
def delete_student(student_id):
    student = db.get_or_404(Student, student_id)
    nama = student.nama
    try:
        FinanceRepository().delete_student(student)
        flash(f'Data siswa {nama} berhasil dihapus.', 'success')
    except Exception as e:
        _fail('Gagal menghapus siswa', e)
    return redirect(url_for('admin.list_students'))


@admin_bp.route('/siswa/<int:student_id>')
@login_required
@admin_required
def student_detail(student_id):
    repo = FinanceRepository()
    student = db.get_or_404(Student, student_id)

    return render_template(
        'admin/fee_items.html',
        student=student,
        items=student.rincian_biaya,
        item_form=BiayaItemForm(),
        catalog=repo.list_catalog(),
    )


@admin_bp.route('/siswa/import', methods=['GET', 'POST'])
@login_required
@admin_required
def import_students():
    form = ImportForm()

    if form.validate_on_submit():
        try:
            rows = parse_student_rows(iter_upload_rows(form.file.data))
            if not rows:
                flash('File tidak berisi data siswa.', 'warning')
                return redirect(url_for('admin.import_students'))

            created, skipped, errors = FinanceRepository().import_students(rows)
            flash(f'Import siswa selesai. Berhasil: {created}, Dilewati: {skipped}.', 'success')
            if errors:
                flash('Contoh error: ' + '; '.join(errors[:3]), 'warning')
            return redirect(url_for('admin.list_students'))
        except Exception as e:
            _fail('Gagal import data siswa', e)

    return render_template('admin/import.html', form=form)


@admin_bp.route('/siswa/import/template')
@login_required
@admin_required
def import_template():
    return Response(student_import_template(), headers={
        'Content-Type': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        'Content-Disposition': 'attachment; filename=Template_Import_Data_Siswa.xlsx',
    })


# =========================================================
# RINCIAN BIAYA PER SISWA
# =========================================================
@admin_bp.route('/siswa/<int:student_id>/rincian', methods=['POST'])
@login_required
@admin_required
def add_fee_item(student_id):
    student = db.get_or_404(Student, student_id)
    form = BiayaItemForm()

    if form.validate_on_submit():
        try:
            item = FinanceRepository().add_fee_item(
                student, form.nama_biaya.data, form.jumlah.data, form.terbayar.data or 0
            )
            flash(f'Item {item.nama_biaya} ditambahkan.', 'success')
        except Exception as e:
            _fail('Gagal menambah item biaya', e)
    else:
        for errors in form.errors.values():
            flash(errors[0], 'danger')

    return redirect(url_for('admin.student_detail', student_id=student.id))


@admin_bp.route('/siswa/<int:student_id>/rincian/katalog', methods=['POST'])
@login_required
@admin_required
def add_catalog_items(student_id):
    student = db.get_or_404(Student, student_id)
    catalog_ids = [int(cid) for cid in request.form.getlist('catalog_ids') if cid.isdigit()]

    if not catalog_ids:
        flash('Pilih minimal satu biaya administrasi.', 'warning')
        return redirect(url_for('admin.student_detail', student_id=student.id))

    try:
        count = FinanceRepository().add_items_from_catalog(student, catalog_ids)
        flash(f'{count} item biaya ditambahkan dari master biaya administrasi.', 'success')
    except Exception as e:
        _fail('Gagal menambah item biaya', e)
    return redirect(url_for('admin.student_detail', student_id=student.id))


@admin_bp.route('/rincian/<int:item_id>/edit', methods=['GET', 'POST'])
@login_required
@admin_required
def edit_fee_item(item_id):
    item = db.get_or_404(BiayaItem, item_id)
    form = BiayaItemForm(obj=item)

    if form.validate_on_submit():
        try:
            FinanceRepository().update_fee_item(
                item, form.nama_biaya.data, form.jumlah.data, form.terbayar.data or 0
            )
            flash(f'Item {item.nama_biaya} berhasil diperbarui.', 'success')
            return redirect(url_for('admin.student_detail', student_id=item.siswa_id))
        except Exception as e:
            _fail('Gagal update item biaya', e)

    return render_template('admin/fee_item_form.html', form=form, item=item)


@admin_bp.route('/rincian/<int:item_id>/hapus', methods=['POST'])
@login_required
@admin_required
def delete_fee_item(item_id):
    item = db.get_or_404(BiayaItem, item_id)
    student_id = item.siswa_id
    try:
        FinanceRepository().delete_fee_item(item)
        flash('Item biaya dihapus.', 'success')
    except Exception as e:
        _fail('Gagal menghapus item biaya', e)
    return redirect(url_for('admin.student_detail', student_id=student_id))


# =========================================================
# MASTER BIAYA ADMINISTRASI
# =========================================================
@admin_bp.route('/biaya-administrasi', methods=['GET', 'POST'])
@login_required
@admin_required
def manage_catalog():
    repo = FinanceRepository()
    form = BiayaAdministrasiForm()

    if form.validate_on_submit():
        try:
            repo.save_catalog_entry(form.nama.data, form.jumlah.data, form.keterangan.data)
            flash('Biaya administrasi ditambahkan.', 'success')
            return redirect(url_for('admin.manage_catalog'))
        except Exception as e:
            _fail('Gagal menyimpan biaya administrasi', e)

    return render_template('admin/catalog.html', form=form, entries=repo.list_catalog())


@admin_bp.route('/biaya-administrasi/<int:entry_id>/edit', methods=['GET', 'POST'])
@login_required
@admin_required
def edit_catalog_entry(entry_id):
    entry = db.get_or_404(BiayaAdministrasi, entry_id)
    form = BiayaAdministrasiForm(obj=entry)

    if form.validate_on_submit():
        try:
            FinanceRepository().save_catalog_entry(form.nama.data, form.jumlah.data, form.keterangan.data, entry=entry)
            flash(f'Biaya {entry.nama} berhasil diperbarui.', 'success')
            return redirect(url_for('admin.manage_catalog'))
        except Exception as e:
            _fail('Gagal update biaya administrasi', e)

    return render_template('admin/catalog_form.html', form=form, entry=entry)


@admin_bp.route('/biaya-administrasi/<int:entry_id>/hapus', methods=['POST'])
@login_required
@admin_required
def delete_catalog_entry(entry_id):
    entry = db.get_or_404(BiayaAdministrasi, entry_id)
    try:
        FinanceRepository().delete_catalog_entry(entry)
        flash('Biaya administrasi dihapus.', 'success')
    except Exception as e:
        _fail('Gagal menghapus biaya administrasi', e)
    return redirect(url_for('admin.manage_catalog'))


# =========================================================
# SPP / INFAQ BULANAN
# =========================================================
@admin_bp.route('/spp')
@admin_bp.route('/spp/<status_slug>')
@login_required
@admin_required
def spp_overview(status_slug=None):
    repo = FinanceRepository()
    filters = _student_filters()
    if status_slug is not None:
        if status_slug not in SPP_STATUS_SLUGS:
            flash('Status siswa tidak dikenal.', 'warning')
            return redirect(url_for('admin.spp_overview'))
        filters['status'] = SPP_STATUS_SLUGS[status_slug].value

    all_students = repo.all_students()
    students = reports.filter_students(all_students, **filters)
    rows = repo.spp_overview(students)

    return render_template(
        'admin/spp.html',
        rows=rows,
        summary=reports.spp_summary(rows),
        rates=repo.get_rates(),
        status_slug=status_slug,
        filters=filters,
        **_filter_options(all_students),
    )


@admin_bp.route('/spp/export')
@login_required
@admin_required
def export_spp():
    repo = FinanceRepository()
    students = reports.filter_students(repo.all_students(), **_student_filters())
    content = spp_csv(repo.spp_overview(students))
    return _csv_response(content, f"infaq_bulanan_{datetime.now().strftime('%Y%m%d')}.csv")


@admin_bp.route('/spp/siswa/<int:student_id>', methods=['GET', 'POST'])
@login_required
@admin_required
def spp_student(student_id):
    repo = FinanceRepository()
    student = db.get_or_404(Student, student_id)
    form = SPPPaymentForm()

    if form.validate_on_submit():
        try:
            record = repo.record_spp_payment(
                student,
                bulan=form.bulan.data,
                nominal=form.nominal.data,
                tanggal_bayar=form.tanggal_bayar.data,
                keterangan=form.keterangan.data,
                jumlah_spp=form.jumlah_spp.data,
            )
            flash(f'Pembayaran SPP {spp.NAMA_BULAN[record.bulan]} {record.tahun_ajaran} '
                  f'tersimpan ({record.status_pembayaran.value}).', 'success')
            return redirect(url_for('admin.spp_student', student_id=student.id))
        except Exception as e:
            _fail('Gagal menyimpan pembayaran SPP', e)

    try:
        slots = repo.month_slots(student)
    except InvalidAcademicYear as e:
        flash(str(e), 'warning')
        slots = []

    return render_template(
        'admin/spp_student.html',
        student=student,
        slots=slots,
        totals=spp.summarize_slots(slots),
        rate=spp.monthly_rate(student.status, repo.get_rates()),
        form=form,
    )


@admin_bp.route('/spp/record/<int:record_id>/edit', methods=['GET', 'POST'])
@login_required
@admin_required
def edit_spp_record(record_id):
    record = db.get_or_404(SPPBulanan, record_id)
    form = SPPEditForm(obj=record)

    if form.validate_on_submit():
        try:
            FinanceRepository().update_spp_record(
                record,
                bulan=form.bulan.data,
                jumlah_spp=form.jumlah_spp.data,
                terbayar=form.terbayar.data or 0,
                tanggal_bayar=form.tanggal_bayar.data,
                keterangan=form.keterangan.data,
            )
            flash('Data pembayaran SPP diperbarui.', 'success')
            return redirect(url_for('admin.spp_student', student_id=record.siswa_id))
        except Exception as e:
            _fail('Gagal update pembayaran SPP', e)

    return render_template('admin/spp_form.html', form=form, record=record)


@admin_bp.route('/spp/record/<int:record_id>/hapus', methods=['POST'])
@login_required
@admin_required
def delete_spp_record(record_id):
    record = db.get_or_404(SPPBulanan, record_id)
    student_id = record.siswa_id
    try:
        FinanceRepository().delete_spp_record(record)
        flash('Data pembayaran SPP dihapus.', 'success')
    except Exception as e:
        _fail('Gagal menghapus pembayaran SPP', e)
    return redirect(url_for('admin.spp_student', student_id=student_id))


@admin_bp.route('/pengaturan/nominal-infaq', methods=['GET', 'POST'])
@login_required
@admin_required
def manage_rates():
    repo = FinanceRepository()
    form = NominalInfaqForm()

    if request.method == 'GET':
        rates = repo.get_rates()
        form.nominal_mukim.data = rates.mukim
        form.nominal_non_mukim.data = rates.non_mukim

    if form.validate_on_submit():
        try:
            repo.set_rates(form.nominal_mukim.data, form.nominal_non_mukim.data)
            flash('Nominal infaq bulanan berhasil disimpan.', 'success')
            return redirect(url_for('admin.manage_rates'))
        except Exception as e:
            _fail('Gagal menyimpan nominal infaq', e)

    return render_template('admin/settings.html', form=form)


# =========================================================
# TRANSAKSI (PEMASUKAN / PENGELUARAN)
# =========================================================
@admin_bp.route('/transaksi', methods=['GET', 'POST'])
@login_required
@admin_required
def manage_transactions():
    repo = FinanceRepository()
    form = TransactionForm()
    form.siswa_id.choices = [(0, '- Tidak terkait siswa -')] + [
        (s.id, f'{s.nama} ({s.nis}) - {s.kelas}') for s in repo.all_students()
    ]

    if form.validate_on_submit():
        try:
            tipe = TransactionType[form.tipe.data]
            student = db.session.get(Student, form.siswa_id.data) if form.siswa_id.data else None
            repo.add_transaction(
                tipe,
                kategori=form.kategori.data,
                jumlah=form.jumlah.data,
                tanggal=form.tanggal.data,
                keterangan=form.keterangan.data,
                student=student,
            )
            flash(f'Transaksi {tipe.value.lower()} berhasil dicatat.', 'success')
            return redirect(url_for('admin.manage_transactions'))
        except Exception as e:
            _fail('Gagal menyimpan transaksi', e)

    tipe_filter = request.args.get('tipe')
    tipe = TransactionType[tipe_filter] if tipe_filter in TransactionType.__members__ else None
    transactions = repo.list_transactions(tipe)
    today = datetime.now().date()

    return render_template(
        'admin/transactions.html',
        form=form,
        transactions=transactions,
        cashflow=reports.cashflow_summary(repo.list_transactions(), today),
        tipe_filter=tipe_filter,
    )


@admin_bp.route('/transaksi/<int:transaction_id>/hapus', methods=['POST'])
@login_required
@admin_required
def delete_transaction(transaction_id):
    trx = db.get_or_404(Transaction, transaction_id)
    try:
        FinanceRepository().delete_transaction(trx)
        flash('Transaksi dihapus.', 'success')
    except Exception as e:
        _fail('Gagal menghapus transaksi', e)
    return redirect(url_for('admin.manage_transactions'))


@admin_bp.route('/pembayaran')
@login_required
@admin_required
def list_payments():
    payments = Payment.query.order_by(Payment.tanggal_pembayaran.desc(), Payment.id.desc()).all()
    return render_template('admin/payments.html', payments=payments)


# =========================================================
# LAPORAN
# =========================================================
@admin_bp.route('/laporan')
@login_required
@admin_required
def financial_report():
    repo = FinanceRepository()
    transactions = repo.list_transactions()
    today = datetime.now().date()
    year = request.args.get('tahun', type=int) or today.year

    return render_template(
        'admin/reports.html',
        cashflow=reports.cashflow_summary(transactions, today),
        trend=reports.monthly_trend(transactions, year),
        year=year,
        summary=reports.fee_summary(repo.all_students()),
        transactions=transactions[:20],
    )


@admin_bp.route('/laporan/rekapitulasi')
@login_required
@admin_required
def recap_report():
    repo = FinanceRepository()
    filters = _student_filters()
    all_students = repo.all_students()
    students = reports.filter_students(all_students, **filters)

    return render_template(
        'admin/recap.html',
        students=students,
        summary=reports.fee_summary(students),
        filters=filters,
        **_filter_options(all_students),
    )


@admin_bp.route('/laporan/rekapitulasi/export')
@login_required
@admin_required
def export_recap():
    students = reports.filter_students(FinanceRepository().all_students(), **_student_filters())
    content = rekapitulasi_csv(students, reports.fee_summary(students))
    return _csv_response(content, f"rekapitulasi_siswa_{datetime.now().strftime('%Y%m%d')}.csv")


@admin_bp.route('/laporan/rincian-biaya')
@login_required
@admin_required
def fee_detail_report():
    repo = FinanceRepository()
    filters = _student_filters()
    all_students = repo.all_students()
    students = reports.filter_students(all_students, **filters)

    return render_template(
        'admin/fee_report.html',
        students=students,
        summary=reports.fee_summary(students),
        filters=filters,
        **_filter_options(all_students),
    )


@admin_bp.route('/laporan/rincian-biaya/export')
@login_required
@admin_required
def export_fee_detail():
    students = reports.filter_students(FinanceRepository().all_students(), **_student_filters())
    return _csv_response(rincian_biaya_csv(students), f"rincian_biaya_{datetime.now().strftime('%Y%m%d')}.csv")


# =========================================================
# PROFIL SEKOLAH & ADMIN
# =========================================================
@admin_bp.route('/profil', methods=['GET', 'POST'])
@login_required
@admin_required
def manage_profile():
    repo = FinanceRepository()
    school_form = SchoolProfileForm(prefix='sekolah', data=repo.school_profile())
    admin_form = AdminProfileForm(prefix='admin', data=repo.admin_profile())

    if request.method == 'POST':
        target = request.form.get('profil')
        form, prefix, defaults = (
            (school_form, 'profil_sekolah', PROFIL_SEKOLAH_DEFAULTS) if target == 'sekolah'
            else (admin_form, 'profil_admin', PROFIL_ADMIN_DEFAULTS)
        )
        if form.validate():
            try:
                repo.save_profile(prefix, defaults, {field: getattr(form, field).data for field in defaults})
                flash('Profil berhasil disimpan.', 'success')
                return redirect(url_for('admin.manage_profile'))
            except Exception as e:
                _fail('Gagal menyimpan profil', e)
        else:
            for errors in form.errors.values():
                flash(errors[0], 'danger')

    return render_template('admin/profile.html', school_form=school_form, admin_form=admin_form)
