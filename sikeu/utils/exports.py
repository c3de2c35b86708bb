import csv
from io import BytesIO, StringIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from sikeu.utils.formatting import status_value


def _render(rows):
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerows(rows)
    return buffer.getvalue()


def rekapitulasi_csv(students, summary):
    rows = [['No', 'Nama Siswa', 'NIS', 'NISN', 'Kelas', 'Status', 'Tahun Ajaran',
             'Jumlah Seharusnya', 'Jumlah Pemasukan', 'Jumlah Kekurangan']]

    for index, student in enumerate(students, start=1):
        rows.append([index, student.nama, student.nis, student.nisn or '', student.kelas,
                     status_value(student.status), student.tahun_ajaran,
                     student.total_biaya, student.terbayar, student.total_biaya - student.terbayar])
        # Baris detail per item biaya
        for item in student.rincian_biaya:
            rows.append(['', item.nama_biaya, '', '', '', '', '', item.jumlah, item.terbayar, item.tunggakan])

    rows.append([])
    rows.append(['GRAND TOTAL', '', '', '', '', '', '',
                 summary.total_biaya, summary.terbayar, summary.total_biaya - summary.terbayar])
    return _render(rows)


def rincian_biaya_csv(students):
    rows = [['No', 'Nama Siswa', 'Kelas', 'NIS', 'NISN', 'Status', 'Tahun Ajaran',
             'Total Biaya', 'Terbayar', 'Tunggakan', 'Status Pembayaran']]

    for index, student in enumerate(students, start=1):
        rows.append([index, student.nama, student.kelas, student.nis, student.nisn or '',
                     status_value(student.status), student.tahun_ajaran,
                     student.total_biaya, student.terbayar, student.tunggakan,
                     'Lunas' if student.tunggakan == 0 else 'Belum Lunas'])
        for item in student.rincian_biaya:
            rows.append(['', item.nama_biaya, '', '', '', '', '', item.jumlah, item.terbayar,
                         item.tunggakan, status_value(item.status)])
    return _render(rows)


def spp_csv(overview_rows):
    rows = [['No', 'Nama Siswa', 'NIS', 'Kelas', 'Tahun Ajaran', 'Status',
             'Total Terbayar', 'Total Tunggakan', 'Jumlah Pembayaran']]

    for index, row in enumerate(overview_rows, start=1):
        student = row['student']
        rows.append([index, student.nama, student.nis, student.kelas, student.tahun_ajaran,
                     status_value(student.status), row['totals'].terbayar, row['totals'].tunggakan,
                     row['jumlah_pembayaran']])
    return _render(rows)


# Template import: hanya data siswa, rincian biaya diisi lewat aplikasi
IMPORT_TEMPLATE_COLUMNS = [
    ('Nama Lengkap', 25),
    ('Kelas', 12),
    ('NIS', 12),
    ('NISN', 15),
    ('Alamat Lengkap', 35),
    ('Nama Orang Tua/Wali', 25),
    ('Status (Mukim/Non Mukim)', 25),
    ('Tahun Ajaran', 15),
]

IMPORT_TEMPLATE_SAMPLES = [
    ['Ahmad Fauzi', 'X RPL 1', '2024001', '0012345678', 'Jl. Merdeka No. 10, Cisauk',
     'Bapak Ahmad Fauzi', 'Mukim', '2024/2025'],
    ['Siti Nurhaliza', 'X TKJ 1', '2024002', '0012345679', 'Jl. Pahlawan No. 15, Tangerang',
     'Ibu Haliza Sari', 'Non Mukim', '2024/2025'],
    ['Budi Santoso', 'XI RPL 1', '2023001', '0012345680', 'Jl. Sudirman No. 20, Cisauk',
     'Bapak Santoso Wijaya', 'Mukim', '2024/2025'],
]


def student_import_template():
    """Workbook .xlsx berisi header import siswa + 3 baris contoh."""
    wb = Workbook()
    ws = wb.active
    ws.title = 'Data Siswa'
    ws.append([header for header, _ in IMPORT_TEMPLATE_COLUMNS])
    for row in IMPORT_TEMPLATE_SAMPLES:
        ws.append(row)

    header_font = Font(bold=True, color='FFFFFF')
    header_fill = PatternFill(fill_type='solid', fgColor='4472C4')
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', vertical='center')
    for column, (_, width) in zip(ws.iter_cols(min_row=1, max_row=1), IMPORT_TEMPLATE_COLUMNS):
        ws.column_dimensions[column[0].column_letter].width = width

    mem = BytesIO()
    wb.save(mem)
    return mem.getvalue()
