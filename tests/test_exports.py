import csv
from io import StringIO
from types import SimpleNamespace

from sikeu.models import PaymentStatus, ResidencyStatus
from sikeu.services.reports import fee_summary
from sikeu.services.spp import SPPTotals
from sikeu.utils.exports import rekapitulasi_csv, rincian_biaya_csv, spp_csv


def _rows(content):
    return list(csv.reader(StringIO(content)))


def _student():
    items = [
        SimpleNamespace(nama_biaya='Uang Gedung', jumlah=1000000, terbayar=400000, tunggakan=600000,
                        status=PaymentStatus.BELUM_LUNAS),
        SimpleNamespace(nama_biaya='Seragam', jumlah=500000, terbayar=500000, tunggakan=0,
                        status=PaymentStatus.LUNAS),
    ]
    return SimpleNamespace(nama='Ahmad Fauzan', nis='2024001', nisn=None, kelas='X TKJ 1',
                           status=ResidencyStatus.MUKIM, tahun_ajaran='2024/2025', rincian_biaya=items,
                           total_biaya=1500000, terbayar=900000, tunggakan=600000)


def test_rekapitulasi_has_detail_rows_and_grand_total():
    students = [_student()]
    rows = _rows(rekapitulasi_csv(students, fee_summary(students)))

    assert rows[0][:3] == ['No', 'Nama Siswa', 'NIS']
    assert rows[1] == ['1', 'Ahmad Fauzan', '2024001', '', 'X TKJ 1', 'Mukim', '2024/2025',
                       '1500000', '900000', '600000']
    assert rows[2][1] == 'Uang Gedung'
    assert rows[3][1] == 'Seragam'
    assert rows[-1][0] == 'GRAND TOTAL'
    assert rows[-1][-3:] == ['1500000', '900000', '600000']


def test_rincian_biaya_marks_item_status():
    rows = _rows(rincian_biaya_csv([_student()]))
    assert rows[1][-1] == 'Belum Lunas'
    assert rows[2][-1] == 'Belum Lunas'
    assert rows[3][-1] == 'Lunas'


def test_spp_csv():
    row = {'student': _student(), 'totals': SPPTotals(7200000, 1200000, 6000000, 2), 'jumlah_pembayaran': 2}
    rows = _rows(spp_csv([row]))
    assert rows[1] == ['1', 'Ahmad Fauzan', '2024001', 'X TKJ 1', '2024/2025', 'Mukim', '1200000', '6000000', '2']
