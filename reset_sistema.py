"""Reset do sistema + cria usuário admin.

Uso:
  python reset_sistema.py

Apaga todas as tabelas do banco configurado (DATABASE_URL ou compras.db),
recria o schema e cria o ADM_MASTER padrão (DEFAULT_ADMIN_EMAIL /
DEFAULT_ADMIN_PASSWORD).
"""

from app import create_app
from app.extensions import db
from app.services.usuarios import seed_admin


def resetar_banco():
    app = create_app()
    with app.app_context():
        db.drop_all()
        db.create_all()
        admin = seed_admin()

        print("OK! Banco recriado.")
        print(f"Login: {admin.email}  |  Senha: {app.config['DEFAULT_ADMIN_PASSWORD']}")


if __name__ == "__main__":
    resetar_banco()
