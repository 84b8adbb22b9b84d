"""
Fixtures do pytest: app com SQLite em memória, cliente HTTP e usuários.

Os testes de serviço usam ``ctx`` (contexto da app ativo durante o teste);
os testes HTTP usam apenas ``client`` para que cada requisição carregue o
próprio usuário logado.
"""
from decimal import Decimal

import pytest

from app import create_app
from app.extensions import db as _db
from app.models import InventoryItem, User
from app.models.user import ADM_MASTER, COMUM, GESTOR, TI
from config import TestingConfig

PASSWORD = "senha123"


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()


def make_user(name, email, role, password=PASSWORD, department="Compras"):
    u = User(name=name, email=email, role=role, department=department, is_active=True)
    u.set_password(password)
    _db.session.add(u)
    _db.session.commit()
    return u


def make_item(name="Papel A4", sku="ND-001", current_qty=0, min_qty=5, price="10.00",
              category="Escritório", unit="UN"):
    item = InventoryItem(name=name, sku=sku, category=category, current_qty=current_qty,
                         min_qty=min_qty, price=Decimal(str(price)), unit=unit)
    item.refresh_status()
    _db.session.add(item)
    _db.session.commit()
    return item


@pytest.fixture()
def admin(ctx):
    return User.query.filter_by(email=ctx.config["DEFAULT_ADMIN_EMAIL"]).one()


@pytest.fixture()
def gestor(ctx):
    return make_user("Gestora Compras", "gestor@grupond.com.br", GESTOR)


@pytest.fixture()
def comum(ctx):
    return make_user("Colaborador", "comum@grupond.com.br", COMUM)


@pytest.fixture()
def ti(ctx):
    return make_user("Suporte TI", "ti@grupond.com.br", TI)


# ------------------------- HTTP -------------------------
@pytest.fixture()
def accounts(app):
    """Cria gestor e comum e devolve {papel: email} para login via API."""
    with app.app_context():
        make_user("Gestora Compras", "gestor@grupond.com.br", GESTOR)
        make_user("Colaborador", "comum@grupond.com.br", COMUM)
    return {
        ADM_MASTER: app.config["DEFAULT_ADMIN_EMAIL"],
        GESTOR: "gestor@grupond.com.br",
        COMUM: "comum@grupond.com.br",
    }


def login(client, email, password=PASSWORD):
    return client.post("/api/login", json={"email": email, "password": password})


@pytest.fixture()
def login_as(app, accounts):
    def _login(role):
        c = app.test_client()
        password = app.config["DEFAULT_ADMIN_PASSWORD"] if role == ADM_MASTER else PASSWORD
        resp = login(c, accounts[role], password)
        assert resp.status_code == 200, resp.get_json()
        return c
    return _login
