from io import BytesIO

import pytest
from openpyxl import Workbook
from werkzeug.datastructures import FileStorage

from sikeu.errors import ImportFormatError
from sikeu.utils.importer import iter_upload_rows, parse_student_rows, parse_amount, normalize_header
from sikeu.utils.exports import student_import_template


CSV_CONTENT = (
    "Nama Lengkap,Kelas,NIS,NISN,Alamat Lengkap,Nama Orang Tua/Wali,Status (Mukim/Non Mukim),Tahun Ajaran,Total Biaya\n"
    "Ahmad Fauzan,X TKJ 1,2024001,0081234501,Cisauk,Bapak Hasan,Mukim,2024/2025,\"1.500.000\"\n"
    ",,,,,,,,\n"
    "Siti Aminah,X TKJ 1,2024002,0081234502,Serpong,Ibu Fatimah,Non Mukim,2024/2025,0\n"
)


def _upload(content, filename):
    return FileStorage(stream=BytesIO(content), filename=filename)


def test_csv_rows_with_header_aliases():
    rows = parse_student_rows(iter_upload_rows(_upload(CSV_CONTENT.encode('utf-8'), 'siswa.csv')))
    assert [idx for idx, _ in rows] == [2, 4]
    first = rows[0][1]
    assert first['nama'] == 'Ahmad Fauzan'
    assert first['alamat'] == 'Cisauk'
    assert first['nama_orang_tua'] == 'Bapak Hasan'
    assert first['status'] == 'Mukim'
    assert first['tahun_ajaran'] == '2024/2025'
    assert parse_amount(first['total_biaya']) == 1500000


def test_csv_with_bom_is_read():
    content = '\ufeff' + CSV_CONTENT
    rows = parse_student_rows(iter_upload_rows(_upload(content.encode('utf-8'), 'siswa.csv')))
    assert rows[0][1]['nama'] == 'Ahmad Fauzan'


def test_missing_required_column_aborts():
    content = b"Nama,Kelas,NIS\nAhmad,X TKJ 1,2024001\n"
    with pytest.raises(ImportFormatError) as exc:
        parse_student_rows(iter_upload_rows(_upload(content, 'siswa.csv')))
    assert 'nisn' in str(exc.value)


def test_xlsx_rows():
    wb = Workbook()
    ws = wb.active
    ws.append(['Nama', 'Kelas', 'NIS', 'NISN', 'Alamat', 'Status', 'Tahun Ajaran'])
    ws.append(['Ahmad Fauzan', 'X TKJ 1', 2024001, 81234501.0, 'Cisauk', 'Mukim', '2024/2025'])
    buffer = BytesIO()
    wb.save(buffer)

    rows = parse_student_rows(iter_upload_rows(_upload(buffer.getvalue(), 'siswa.xlsx')))
    assert rows == [(2, {
        'nama': 'Ahmad Fauzan', 'kelas': 'X TKJ 1', 'nis': '2024001', 'nisn': '81234501',
        'alamat': 'Cisauk', 'status': 'Mukim', 'tahun_ajaran': '2024/2025',
    })]


def test_broken_xlsx_is_reported():
    with pytest.raises(ImportFormatError):
        iter_upload_rows(_upload(b'bukan excel', 'siswa.xlsx'))


def test_unsupported_extension():
    with pytest.raises(ImportFormatError):
        iter_upload_rows(_upload(b'data', 'siswa.pdf'))


def test_normalize_header_and_amounts():
    assert normalize_header('Sudah Terbayar') == 'terbayar'
    assert normalize_header('  NIS ') == 'nis'
    assert parse_amount('Rp 2.500.000') == 2500000
    assert parse_amount(None) == 0
    assert parse_amount(1500000.75) == 1500001
    assert parse_amount('1500000,50') == 1500000


def test_xlsx_decimal_amount_is_rounded():
    wb = Workbook()
    ws = wb.active
    ws.append(['Nama', 'Kelas', 'NIS', 'NISN', 'Alamat', 'Status', 'Tahun Ajaran', 'Total Biaya'])
    ws.append(['Ahmad Fauzan', 'X TKJ 1', '2024001', '0081234501', 'Cisauk', 'Mukim', '2024/2025', 1500000.75])
    buffer = BytesIO()
    wb.save(buffer)

    rows = parse_student_rows(iter_upload_rows(_upload(buffer.getvalue(), 'siswa.xlsx')))
    assert parse_amount(rows[0][1]['total_biaya']) == 1500001


def test_missing_name_column_is_reported():
    content = b"Kelas,NIS,NISN,Alamat,Status,Tahun Ajaran\nX TKJ 1,2024001,0081234501,Cisauk,Mukim,2024/2025\n"
    with pytest.raises(ImportFormatError) as exc:
        parse_student_rows(iter_upload_rows(_upload(content, 'siswa.csv')))
    assert 'nama' in str(exc.value)


def test_import_template_is_readable_by_importer():
    rows = parse_student_rows(iter_upload_rows(_upload(student_import_template(), 'template.xlsx')))
    assert [row['nama'] for _, row in rows] == ['Ahmad Fauzi', 'Siti Nurhaliza', 'Budi Santoso']
    assert rows[1][1]['status'] == 'Non Mukim'
    assert rows[0][1]['nisn'] == '0012345678'
