import os, sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from types import SimpleNamespace

import pytest

from config import TestConfig
from sikeu import create_app
from sikeu.extensions import db
from sikeu.models import User, Student, ResidencyStatus
from sikeu.repository import FinanceRepository


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_user(app):
    user = User(username='admin', email='admin@sekolah.id', role='admin')
    user.set_password('admin123')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_client(client, admin_user):
    r = client.post('/auth/login', data={'username': 'admin', 'password': 'admin123'})
    assert r.status_code == 302
    return client


@pytest.fixture
def repo(app):
    return FinanceRepository()


@pytest.fixture
def make_student(repo):
    def _make(nis='2024001', nama='Ahmad Fauzan', status='MUKIM', tahun_ajaran='2024/2025', kelas='X TKJ 1', **extra):
        data = dict(nama=nama, nis=nis, nisn=extra.pop('nisn', '00' + nis), kelas=kelas, alamat='Cisauk',
                    nama_orang_tua=extra.pop('nama_orang_tua', 'Bapak Hasan'), status=status,
                    tahun_ajaran=tahun_ajaran)
        return repo.create_student(data, **extra)
    return _make


def item(jumlah, terbayar=0, id=None):
    """BiayaItem tiruan untuk test fungsi murni."""
    return SimpleNamespace(id=id, jumlah=jumlah, terbayar=terbayar, tunggakan=None, status=None)


def student_stub(items=None, tunggakan=0, terbayar=0, total_biaya=0, **kw):
    return SimpleNamespace(rincian_biaya=items or [], tunggakan=tunggakan, terbayar=terbayar,
                           total_biaya=total_biaya, **kw)
