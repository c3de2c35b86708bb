from datetime import datetime

from flask import Blueprint, render_template, redirect, url_for, flash, current_app
from flask_login import login_user, logout_user, current_user, login_required
from sqlalchemy import or_

from sikeu.extensions import db
from sikeu.forms import LoginForm
from sikeu.models import User
from sikeu.utils.security import redirect_target


auth_bp = Blueprint('auth', __name__)


# --- ROUTE LOGIN ----
@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('admin.dashboard'))

    form = LoginForm()
    if form.validate_on_submit():
        identifier = form.username.data.strip()
        user = User.query.filter(or_(User.username == identifier, User.email == identifier)).first()

        if user and user.check_password(form.password.data):
            login_user(user, remember=form.remember.data)
            user.last_login = datetime.utcnow()
            db.session.commit()
            current_app.logger.info('Admin %s login', user.username)
            return redirect(redirect_target('admin.dashboard'))

        current_app.logger.warning('Login gagal untuk %r', identifier)
        flash('Login gagal. Cek kembali username dan password.', 'danger')

    return render_template('auth/login.html', title='Login', form=form)


@auth_bp.route('/logout')
@login_required
def logout():
    logout_user()
    flash('Anda telah keluar.', 'info')
    return redirect(url_for('main.index'))
