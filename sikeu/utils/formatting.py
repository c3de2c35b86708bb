from datetime import date, datetime

from sikeu.services.spp import NAMA_BULAN


def format_rp(angka):
    """Rp 1.500.000 (pemisah ribuan titik, tanpa desimal)."""
    return f"Rp {int(angka or 0):,.0f}".replace(",", ".")


def nama_bulan(kode):
    return NAMA_BULAN.get(str(kode).zfill(2), '')


def format_tanggal(value):
    """15 Januari 2025"""
    if not value:
        return '-'
    if isinstance(value, str):
        try:
            value = datetime.strptime(value, '%Y-%m-%d').date()
        except ValueError:
            return value
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return f"{value.day} {nama_bulan(value.month)} {value.year}"
    return str(value)


def status_value(status):
    return getattr(status, 'value', status) or '-'


def register_template_filters(app):
    app.add_template_filter(format_rp, 'rupiah')
    app.add_template_filter(format_tanggal, 'tanggal')
    app.add_template_filter(nama_bulan, 'nama_bulan')
    app.add_template_filter(status_value, 'label')
