from flask import Flask, jsonify

from config import Config
from .errors import register_error_handlers
from .extensions import db, login_manager
from .logging_config import configure_logging
from .models.user import User


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logger = configure_logging(app)
    logger.info("Iniciando aplicação (%s)", config_class.__name__)

    db.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Faça login para continuar.", "code": "nao_autenticado"}), 401

    register_error_handlers(app)

    # Blueprints
    from app.blueprints.auth import auth_bp
    from app.blueprints.estoque import estoque_bp
    from app.blueprints.admin import admin_bp
    from app.blueprints.relatorios import relatorios_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(estoque_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(relatorios_bp)

    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    # cria tabelas + admin padrão
    with app.app_context():
        db.create_all()
        _seed_admin()

    return app


def _seed_admin():
    from app.services.usuarios import seed_admin

    seed_admin()
