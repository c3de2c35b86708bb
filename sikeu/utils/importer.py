import csv
import re
from datetime import datetime, date
from io import TextIOWrapper

from openpyxl import load_workbook

from sikeu.errors import ImportFormatError


# Header kolom (Indonesia / Inggris / template lama) -> nama field Student
COLUMN_ALIASES = {
    'nama': 'nama',
    'nama siswa': 'nama',
    'nama lengkap': 'nama',
    'kelas': 'kelas',
    'nis': 'nis',
    'nisn': 'nisn',
    'alamat': 'alamat',
    'alamat lengkap': 'alamat',
    'nama orang tua': 'nama_orang_tua',
    'nama orang tua/wali': 'nama_orang_tua',
    'namaorangtua': 'nama_orang_tua',
    'nama_orang_tua': 'nama_orang_tua',
    'status': 'status',
    'status (mukim/non mukim)': 'status',
    'tahun ajaran': 'tahun_ajaran',
    'tahunajaran': 'tahun_ajaran',
    'tahun_ajaran': 'tahun_ajaran',
    'total biaya': 'total_biaya',
    'totalbiaya': 'total_biaya',
    'terbayar': 'terbayar',
    'sudah terbayar': 'terbayar',
}

REQUIRED_COLUMNS = ['nama', 'kelas', 'nis', 'nisn', 'alamat', 'status', 'tahun_ajaran']

_DECIMAL_RE = re.compile(r'^\d+[.,]\d{1,2}$')


def _normalize_cell(value):
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(value).strip()
    if isinstance(value, int):
        return str(value)
    return str(value).strip()


def normalize_header(header):
    key = (header or '').strip()
    return COLUMN_ALIASES.get(key.lower(), key.lower())


def iter_upload_rows(file):
    """(nomor_baris, dict) dari file CSV/XLSX; baris 1 = header."""
    filename = (file.filename or "").lower()
    if filename.endswith('.xlsx'):
        try:
            workbook = load_workbook(file, data_only=True)
        except Exception as exc:
            raise ImportFormatError(
                'Gagal membaca file Excel. Pastikan format file sudah benar dan menggunakan template yang disediakan.'
            ) from exc
        sheet = workbook.active
        rows = list(sheet.iter_rows(values_only=True))
        if not rows:
            return []
        headers = [str(cell).strip() if cell is not None else '' for cell in rows[0]]
        parsed = []
        for idx, row in enumerate(rows[1:], start=2):
            row_data = {}
            for col_idx, header in enumerate(headers):
                value = row[col_idx] if col_idx < len(row) else None
                row_data[header] = _normalize_cell(value)
            parsed.append((idx, row_data))
        return parsed

    if not filename.endswith('.csv'):
        raise ImportFormatError('Format file harus CSV atau XLSX.')

    stream = getattr(file, 'stream', file)
    wrapper = TextIOWrapper(stream, encoding='utf-8-sig')
    try:
        reader = csv.DictReader(wrapper)
        return [(idx, {k: (v.strip() if isinstance(v, str) else '' if v is None else str(v).strip())
                       for k, v in row.items() if k is not None})
                for idx, row in enumerate(reader, start=2)]
    except (csv.Error, UnicodeDecodeError) as exc:
        raise ImportFormatError(f'File CSV tidak bisa dibaca: {exc}') from exc
    finally:
        wrapper.detach()


def parse_student_rows(raw_rows):
    """Normalisasi header lalu cek kolom wajib; baris tanpa nama dilewati."""
    if not raw_rows:
        return []

    # Kolom dicek dari header, bukan dari baris yang lolos filter nama
    headers = {normalize_header(key) for key in raw_rows[0][1]}
    missing = [field for field in REQUIRED_COLUMNS if field not in headers]
    if missing:
        raise ImportFormatError(
            f"Kolom yang wajib ada namun tidak ditemukan: {', '.join(missing)}"
        )

    rows = []
    for idx, raw in raw_rows:
        normalized = {normalize_header(key): value for key, value in raw.items()}
        if not normalized.get('nama'):
            continue
        rows.append((idx, normalized))
    return rows


def parse_amount(value):
    """'Rp 1.500.000' / 1500000.0 / '1500000,50' -> rupiah bulat."""
    if isinstance(value, (int, float)):
        return int(round(value))
    text = str(value or '').strip()
    # Desimal 1-2 digit (bukan pemisah ribuan yang selalu 3 digit)
    if _DECIMAL_RE.match(text):
        return int(round(float(text.replace(',', '.'))))
    digits = ''.join(ch for ch in text if ch.isdigit())
    return int(digits) if digits else 0
