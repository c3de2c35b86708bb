import random
from urllib.parse import quote
from datetime import datetime

from sikeu.models import Payment


def generate_nomor_kwitansi(now=None):
    # Format: KWT/20250115/0042 (4 digit acak, diulang jika bentrok)
    now = now or datetime.now()
    prefix = f"KWT/{now.strftime('%Y%m%d')}"

    while True:
        nomor = f"{prefix}/{random.randint(0, 9999):04d}"
        if not Payment.query.filter_by(nomor_kwitansi=nomor).first():
            return nomor


def whatsapp_link(number, message=None):
    link = f"https://wa.me/{number}"
    if message:
        link = f"{link}?text={quote(message)}"
    return link
