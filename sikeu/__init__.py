from flask import Flask
from config import Config
from sikeu.extensions import db, migrate, login_manager, csrf


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # 1. Init Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    # 2. Filter Jinja (rupiah, tanggal, nama_bulan, label enum)
    from sikeu.utils.formatting import register_template_filters
    register_template_filters(app)

    @app.context_processor
    def inject_helpers():
        from datetime import datetime
        return {
            'datetime': datetime,
            'school_name': app.config['SCHOOL_NAME'],
            'whatsapp_number': app.config['WHATSAPP_NUMBER'],
        }

    # 3. Import Models (Penting agar db.create_all mendeteksi tabel)
    from sikeu import models

    # 4. User Loader (Wajib untuk Flask-Login)
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(models.User, int(user_id))

    # 5. Registrasi Blueprint
    from sikeu.routes.auth import auth_bp
    from sikeu.routes.main import main_bp
    from sikeu.routes.admin import admin_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin')

    return app
