import argparse
from typing import List, Optional, Tuple

from sikeu import create_app
from sikeu.extensions import db
from sikeu.models import Student, SPPBulanan
from sikeu.services.fee_items import calculate_totals, apply_totals, refresh_item
from sikeu.services.spp import derive_spp_status, refresh_record


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Hitung ulang total cache siswa dari rincian biaya dan status record SPP."
    )
    parser.add_argument("--nis", help="Batasi ke satu siswa (NIS).")
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Simpan hasil perhitungan ulang. Tanpa ini hanya preview.",
    )
    return parser.parse_args(argv)


def student_drift(student: Student) -> Optional[Tuple[tuple, tuple]]:
    """(tersimpan, seharusnya) jika total cache berbeda dari rincian biaya.

    Siswa tanpa rincian (hasil import total lama) tidak disentuh.
    """
    if not student.rincian_biaya:
        return None
    totals = calculate_totals(student.rincian_biaya)
    expected = (totals.total_biaya, totals.terbayar, max(0, totals.tunggakan))
    stored = (student.total_biaya, student.terbayar, student.tunggakan)
    if stored != expected:
        return stored, expected
    return None


def spp_record_drift(record: SPPBulanan) -> bool:
    expected_tunggakan = max(0, (record.jumlah_spp or 0) - (record.terbayar or 0))
    return (
        record.tunggakan != expected_tunggakan
        or record.status_pembayaran != derive_spp_status(record.jumlah_spp, record.terbayar)
    )


def collect_drift(students: List[Student]):
    student_rows = []
    record_rows = []
    for student in students:
        drift = student_drift(student)
        if drift:
            student_rows.append((student, drift))
        record_rows.extend(r for r in student.spp_records if spp_record_drift(r))
    return student_rows, record_rows


def print_preview(student_rows, record_rows) -> None:
    print(f"Siswa dengan total tidak sinkron: {len(student_rows)}")
    for student, (stored, expected) in student_rows:
        print(f"- nis={student.nis} nama={student.nama} tersimpan={stored} seharusnya={expected}")
    print(f"Record SPP dengan status tidak sinkron: {len(record_rows)}")
    for record in record_rows:
        print(f"- siswa_id={record.siswa_id} bulan={record.bulan} ta={record.tahun_ajaran} "
              f"terbayar={record.terbayar}/{record.jumlah_spp} status={record.status_pembayaran.value}")


def apply_fixes(student_rows, record_rows) -> None:
    for student, _ in student_rows:
        for item in student.rincian_biaya:
            refresh_item(item)
        apply_totals(student)
    for record in record_rows:
        refresh_record(record)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    app = create_app()

    with app.app_context():
        query = Student.query.order_by(Student.nis.asc())
        if args.nis:
            query = query.filter(Student.nis == args.nis.strip())
        students = query.all()

        student_rows, record_rows = collect_drift(students)
        print_preview(student_rows, record_rows)

        if not student_rows and not record_rows:
            print("Semua data sudah sinkron.")
            return 0

        if not args.yes:
            print("Mode preview. Tambahkan --yes untuk menyimpan perhitungan ulang.")
            return 0

        try:
            apply_fixes(student_rows, record_rows)
            db.session.commit()
            app.logger.info("Hitung ulang selesai: %s siswa, %s record SPP", len(student_rows), len(record_rows))
            print("Hitung ulang selesai.")
            return 0
        except Exception as exc:
            db.session.rollback()
            print(f"Gagal hitung ulang: {exc}")
            return 1


if __name__ == "__main__":
    raise SystemExit(main())
