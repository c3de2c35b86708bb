from sikeu.extensions import db
from sikeu.models import PaymentStatus
from sikeu.scripts.recalculate_totals import collect_drift, apply_fixes, parse_args


def test_parse_args_defaults_to_preview():
    args = parse_args([])
    assert args.yes is False
    assert args.nis is None
    assert parse_args(['--yes', '--nis', '2024001']).yes is True


def test_drift_is_detected_and_fixed(repo, make_student):
    student = make_student()
    repo.add_fee_item(student, 'Uang Gedung', 1000000)
    record = repo.record_spp_payment(student, '07', 600000)

    # Simulasikan total cache yang rusak
    student.total_biaya, student.terbayar, student.tunggakan = 5, 5, 5
    record.status_pembayaran = PaymentStatus.BELUM_LUNAS
    db.session.commit()

    student_rows, record_rows = collect_drift([student])
    assert student_rows == [(student, ((5, 5, 5), (1000000, 0, 1000000)))]
    assert record_rows == [record]

    apply_fixes(student_rows, record_rows)
    db.session.commit()
    assert (student.total_biaya, student.terbayar, student.tunggakan) == (1000000, 0, 1000000)
    assert record.status_pembayaran == PaymentStatus.LUNAS
    assert collect_drift([student]) == ([], [])


def test_students_without_items_are_left_alone(make_student):
    student = make_student()
    student.total_biaya, student.terbayar, student.tunggakan = 1000000, 0, 1000000
    db.session.commit()
    assert collect_drift([student]) == ([], [])
