from flask import (
    Blueprint,
    render_template,
    redirect,
    url_for,
    flash,
    request,
    current_app,
)

from sikeu.extensions import db
from sikeu.errors import FinanceError, InvalidAcademicYear
from sikeu.forms import ParentPaymentForm
from sikeu.models import Student, Payment, PaymentMethod
from sikeu.repository import FinanceRepository
from sikeu.services.spp import summarize_slots
from sikeu.utils.formatting import format_rp
from sikeu.utils.receipts import whatsapp_link


main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def index():
    """Halaman wali murid: cari siswa lewat NIS / NISN / nama."""
    query = (request.args.get('q') or '').strip()
    if query:
        return redirect(url_for('main.lookup', q=query))
    return render_template('main/index.html')


@main_bp.route('/cek')
def lookup():
    query = (request.args.get('q') or '').strip()
    if not query:
        flash('Masukkan NIS, NISN, atau nama siswa.', 'warning')
        return redirect(url_for('main.index'))

    repo = FinanceRepository()
    student = repo.find_student(query)
    if not student:
        flash(f'Data siswa "{query}" tidak ditemukan.', 'warning')
        return redirect(url_for('main.index'))

    # Jadwal SPP tetap tampil kosong jika tahun ajaran siswa rusak
    try:
        slots = repo.month_slots(student)
    except InvalidAcademicYear as e:
        current_app.logger.warning('Jadwal SPP siswa %s tidak bisa dibuat: %s', student.nis, e)
        slots = []

    return render_template(
        'main/lookup.html',
        student=student,
        items=student.rincian_biaya,
        slots=slots,
        spp_totals=summarize_slots(slots),
        query=query,
    )


@main_bp.route('/bayar/<int:siswa_id>', methods=['GET', 'POST'])
def pay(siswa_id):
    student = db.get_or_404(Student, siswa_id)

    if student.tunggakan <= 0:
        flash(f'Tagihan {student.nama} sudah lunas. Terima kasih!', 'info')
        return redirect(url_for('main.lookup', q=student.nis))

    form = ParentPaymentForm()
    outstanding_items = [item for item in student.rincian_biaya if item.tunggakan > 0]
    form.item_ids.choices = [
        (item.id, f'{item.nama_biaya} (sisa {format_rp(item.tunggakan)})') for item in outstanding_items
    ]
    if request.method == 'GET':
        form.nama_orang_tua.data = student.nama_orang_tua

    if form.validate_on_submit():
        try:
            payment = FinanceRepository().record_parent_payment(
                student,
                jumlah=form.jumlah.data,
                metode=PaymentMethod[form.metode.data],
                nama_orang_tua=form.nama_orang_tua.data,
                item_ids=form.item_ids.data or None,
            )
            flash(f'Pembayaran {format_rp(payment.jumlah_bayar)} berhasil dicatat. '
                  f'Nomor kwitansi: {payment.nomor_kwitansi}', 'success')
            if payment.transaction.kelebihan_bayar:
                flash(f'Pembayaran melebihi sisa tagihan. Kelebihan '
                      f'{format_rp(payment.transaction.kelebihan_bayar)} dicatat pada kwitansi.', 'info')
            return redirect(url_for('main.receipt', payment_id=payment.id))
        except FinanceError as e:
            db.session.rollback()
            flash(str(e), 'danger')
        except Exception:
            db.session.rollback()
            current_app.logger.exception('Gagal mencatat pembayaran wali murid siswa %s', student.nis)
            flash('Terjadi kesalahan saat menyimpan pembayaran. Silakan coba lagi.', 'danger')

    return render_template(
        'main/pay.html',
        student=student,
        form=form,
        accounts=current_app.config['PAYMENT_ACCOUNTS'],
    )


@main_bp.route('/kwitansi/<int:payment_id>')
def receipt(payment_id):
    payment = db.get_or_404(Payment, payment_id)

    message = (f'Assalamualaikum, saya {payment.nama_orang_tua} ingin konfirmasi pembayaran '
               f'{format_rp(payment.jumlah_bayar)} untuk {payment.nama_siswa} ({payment.kelas}). '
               f'No. Kwitansi: {payment.nomor_kwitansi}')
    return render_template(
        'main/receipt.html',
        payment=payment,
        student=payment.student,
        account=current_app.config['PAYMENT_ACCOUNTS'].get(payment.metode_pembayaran.name, {}),
        whatsapp_url=whatsapp_link(current_app.config['WHATSAPP_NUMBER'], message),
        profil=FinanceRepository().school_profile(),
    )
