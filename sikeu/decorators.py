from functools import wraps
from flask import abort, current_app, flash, redirect, request, url_for
from flask_login import current_user


def admin_required(fn):
    """
    Halaman keuangan hanya untuk user ber-role admin.
    Belum login -> ke halaman login, login tapi bukan admin -> 403.
    """
    @wraps(fn)
    def decorated_view(*args, **kwargs):
        if not current_user.is_authenticated:
            flash('Silakan login sebagai admin terlebih dahulu.', 'info')
            return redirect(url_for('auth.login', next=request.path))
        if not current_user.is_admin:
            current_app.logger.warning('User %s mencoba membuka %s', current_user.username, request.path)
            return abort(403)
        return fn(*args, **kwargs)
    return decorated_view
