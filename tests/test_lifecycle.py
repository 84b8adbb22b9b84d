from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    ValidationError,
)
from app.extensions import db
from app.models import ExistingItemRef, InventoryItem, NewItemRequest, PurchaseRequest, SystemLog
from app.models.inventory_item import CRITICO, NORMAL
from app.models.purchase_request import APROVADO, COMPRADO, PENDENTE, REJEITADO
from app.models.user import GESTOR
from app.services import estoque, solicitacoes
from tests.conftest import make_item, make_user


# ------------------------- criação -------------------------
def test_create_request_for_existing_item(ctx, comum):
    item = make_item(current_qty=2, min_qty=5)
    req, warning = solicitacoes.create_request(comum, ExistingItemRef(item.id), 10, "5.00", "urgente")

    assert req.status == PENDENTE
    assert req.item_id == item.id
    assert req.custom_item_name is None
    assert req.quantity == 10
    assert req.unit_price == Decimal("5.00")
    assert req.requester_id == comum.id
    assert req.requester_name == comum.name
    assert req.date is not None
    assert warning is None

    log = SystemLog.query.filter_by(action="Nova Solicitação").one()
    assert log.description == "Solicitou 10x Papel A4"
    assert log.user_id == comum.id


def test_create_request_for_new_item(ctx, comum):
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Cadeira Ergonômica", "Móveis"), 2, "899.90")

    assert req.item_id is None
    assert req.custom_item_name == "Cadeira Ergonômica"
    assert req.custom_category == "Móveis"
    assert req.is_novel
    assert isinstance(req.target, NewItemRequest)


@pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5])
def test_create_request_rejects_bad_quantity(ctx, comum, quantity):
    item = make_item()
    with pytest.raises(ValidationError):
        solicitacoes.create_request(comum, ExistingItemRef(item.id), quantity, "1.00")
    assert PurchaseRequest.query.count() == 0


def test_create_request_rejects_negative_price(ctx, comum):
    item = make_item()
    with pytest.raises(ValidationError):
        solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "-0.01")


def test_create_request_requires_target(ctx, comum):
    with pytest.raises(ValidationError):
        solicitacoes.create_request(comum, None, 1, "1.00")
    with pytest.raises(ValidationError):
        solicitacoes.create_request(comum, NewItemRequest("   "), 1, "1.00")


def test_create_request_unknown_item(ctx, comum):
    with pytest.raises(NotFoundError):
        solicitacoes.create_request(comum, ExistingItemRef(999), 1, "1.00")


def test_parse_target_exactly_one():
    assert solicitacoes.parse_target({"item_id": "7"}) == ExistingItemRef(7)
    assert solicitacoes.parse_target({"custom_item_name": " Mesa ", "custom_category": "Móveis"}) == \
        NewItemRequest("Mesa", "Móveis")

    with pytest.raises(ValidationError):
        solicitacoes.parse_target({"item_id": 1, "custom_item_name": "Mesa"})
    with pytest.raises(ValidationError):
        solicitacoes.parse_target({})
    with pytest.raises(ValidationError):
        solicitacoes.parse_target({"item_id": "", "custom_item_name": "  "})


# ------------------------- aprovação -------------------------
def test_approving_new_item_request_provisions_item_once(ctx, gestor, comum):
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Cadeira", "Móveis"), 3, "120.50")

    approved = solicitacoes.update_request_status(gestor, req.id, "APROVADO")

    assert approved.status == APROVADO
    assert approved.item_id is not None
    assert InventoryItem.query.count() == 1

    item = db.session.get(InventoryItem, approved.item_id)
    assert item.name == "Cadeira"
    assert item.sku == "ND-001"
    assert item.category == "Móveis"
    assert item.current_qty == 0
    assert item.min_qty == 5
    assert item.price == Decimal("120.50")
    assert item.unit == "UN"
    assert item.status == CRITICO
    assert estoque.display_status(item) == "Em Reposição"

    with pytest.raises(InvalidTransitionError):
        solicitacoes.update_request_status(gestor, req.id, "APROVADO")
    assert InventoryItem.query.count() == 1


def test_new_item_without_category_falls_back_to_default(ctx, gestor, comum):
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Grampeador"), 1, "30")
    approved = solicitacoes.update_request_status(gestor, req.id, "APROVADO")
    assert db.session.get(InventoryItem, approved.item_id).category == "Geral"


def test_new_item_gets_next_sequential_sku(ctx, gestor, comum):
    make_item(name="Caneta", sku="ND-001")
    make_item(name="Lápis", sku="ND-003")
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Borracha"), 1, "1")

    approved = solicitacoes.update_request_status(gestor, req.id, "APROVADO")
    assert db.session.get(InventoryItem, approved.item_id).sku == "ND-004"


def test_approval_is_rolled_back_when_a_write_fails(ctx, gestor, comum, monkeypatch):
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Cadeira"), 3, "120.50")
    request_id = req.id

    def broken_log(*args, **kwargs):
        raise SQLAlchemyError("conexão perdida")

    monkeypatch.setattr(solicitacoes, "add_log", broken_log)
    with pytest.raises(StoreError):
        solicitacoes.update_request_status(gestor, request_id, "APROVADO")

    assert InventoryItem.query.count() == 0
    req = db.session.get(PurchaseRequest, request_id)
    assert req.status == PENDENTE
    assert req.item_id is None


def test_sku_collision_is_retried_with_fresh_sku(ctx, gestor, comum, monkeypatch):
    make_item(name="Caneta", sku="ND-001")
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Borracha"), 1, "1")

    skus = iter(["ND-001", "ND-002"])
    monkeypatch.setattr(solicitacoes, "generate_next_sku", lambda: next(skus))

    approved = solicitacoes.update_request_status(gestor, req.id, "APROVADO")
    assert approved.status == APROVADO
    assert db.session.get(InventoryItem, approved.item_id).sku == "ND-002"
    assert InventoryItem.query.count() == 2


def test_sku_collision_gives_up_after_max_attempts(ctx, gestor, comum, monkeypatch):
    make_item(name="Caneta", sku="ND-001")
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Borracha"), 1, "1")
    request_id = req.id

    monkeypatch.setattr(solicitacoes, "generate_next_sku", lambda: "ND-001")

    with pytest.raises(ConflictError):
        solicitacoes.update_request_status(gestor, request_id, "APROVADO")
    assert InventoryItem.query.count() == 1
    assert db.session.get(PurchaseRequest, request_id).status == PENDENTE


# ------------------------- compra -------------------------
def test_purchase_scenario_increments_stock_once(ctx, gestor, comum):
    item = make_item(current_qty=2, min_qty=5, price="5.00")
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 10, "5.00")
    solicitacoes.update_request_status(gestor, req.id, "APROVADO")

    bought = solicitacoes.update_request_status(gestor, req.id, "COMPRADO")
    assert bought.status == COMPRADO
    item = db.session.get(InventoryItem, item.id)
    assert item.current_qty == 12
    assert item.status == NORMAL
    assert estoque.display_status(item) == NORMAL

    logs_before = SystemLog.query.count()
    again = solicitacoes.update_request_status(gestor, req.id, "COMPRADO")
    assert again.status == COMPRADO
    assert db.session.get(InventoryItem, item.id).current_qty == 12
    assert SystemLog.query.count() == logs_before


def test_purchase_still_critical_when_below_minimum(ctx, gestor, comum):
    item = make_item(current_qty=0, min_qty=20)
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 10, "1.00")
    solicitacoes.update_request_status(gestor, req.id, "APROVADO")
    solicitacoes.update_request_status(gestor, req.id, "COMPRADO")

    item = db.session.get(InventoryItem, item.id)
    assert item.current_qty == 10
    assert item.status == CRITICO
    assert estoque.display_status(item) == CRITICO


def test_new_item_purchase_replenishes_provisioned_item(ctx, gestor, comum):
    req, _ = solicitacoes.create_request(comum, NewItemRequest("Monitor 24", "TI"), 8, "700")
    approved = solicitacoes.update_request_status(gestor, req.id, "APROVADO")
    solicitacoes.update_request_status(gestor, req.id, "COMPRADO")

    item = db.session.get(InventoryItem, approved.item_id)
    assert item.current_qty == 8
    assert item.status == NORMAL


def test_cannot_skip_approval(ctx, gestor, comum):
    item = make_item(current_qty=1)
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 4, "1.00")

    with pytest.raises(InvalidTransitionError):
        solicitacoes.update_request_status(gestor, req.id, "COMPRADO")
    assert db.session.get(InventoryItem, item.id).current_qty == 1


def test_purchase_fails_when_item_was_deleted(ctx, gestor, comum):
    item = make_item(current_qty=1)
    item_id = item.id
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item_id), 4, "1.00")
    solicitacoes.update_request_status(gestor, req.id, "APROVADO")
    estoque.delete_item(gestor, item_id)

    with pytest.raises(NotFoundError):
        solicitacoes.update_request_status(gestor, req.id, "COMPRADO")

    req = db.session.get(PurchaseRequest, req.id)
    assert req.status == APROVADO
    assert req.item_id == item_id
    assert req.item_name == "item removido"


# ------------------------- rejeição -------------------------
@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(ctx, gestor, comum, reason):
    item = make_item()
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")

    with pytest.raises(ValidationError):
        solicitacoes.update_request_status(gestor, req.id, "REJEITADO", reason)
    assert db.session.get(PurchaseRequest, req.id).status == PENDENTE


def test_rejected_request_is_terminal(ctx, gestor, comum):
    item = make_item()
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")

    rejected = solicitacoes.update_request_status(gestor, req.id, "REJEITADO", "fora de orçamento")
    assert rejected.status == REJEITADO
    assert rejected.rejection_reason == "fora de orçamento"

    for status in ("APROVADO", "COMPRADO", "PENDENTE", "REJEITADO"):
        with pytest.raises(InvalidTransitionError):
            solicitacoes.update_request_status(gestor, req.id, status, "outro motivo")

    log = SystemLog.query.filter_by(action="Atualização Pedido").one()
    assert "fora de orçamento" in log.description
    assert log.previous_status == PENDENTE


def test_approved_request_cannot_be_rejected(ctx, gestor, comum):
    item = make_item()
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")
    solicitacoes.update_request_status(gestor, req.id, "APROVADO")

    with pytest.raises(InvalidTransitionError):
        solicitacoes.update_request_status(gestor, req.id, "REJEITADO", "desisti")


# ------------------------- erros gerais -------------------------
def test_only_managers_change_status(ctx, comum, ti):
    item = make_item()
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")

    for actor in (comum, ti):
        with pytest.raises(PermissionDeniedError):
            solicitacoes.update_request_status(actor, req.id, "APROVADO")
    assert db.session.get(PurchaseRequest, req.id).status == PENDENTE


def test_admin_can_change_status(ctx, admin, comum):
    item = make_item()
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")
    assert solicitacoes.update_request_status(admin, req.id, "APROVADO").status == APROVADO


def test_deactivated_manager_loses_approval(ctx, comum):
    ex_gestor = make_user("Ex Gestor", "ex@grupond.com.br", GESTOR)
    ex_gestor.deactivate()
    db.session.commit()
    item = make_item()
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")

    with pytest.raises(PermissionDeniedError):
        solicitacoes.update_request_status(ex_gestor, req.id, "APROVADO")


def test_unknown_request(ctx, gestor):
    with pytest.raises(NotFoundError):
        solicitacoes.update_request_status(gestor, 999, "APROVADO")


def test_unknown_status(ctx, gestor, comum):
    item = make_item()
    req, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")
    with pytest.raises(ValidationError):
        solicitacoes.update_request_status(gestor, req.id, "ENTREGUE")


# ------------------------- lote -------------------------
def test_bulk_approval_reports_each_request(ctx, gestor, comum):
    item = make_item()
    r1, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")
    r2, _ = solicitacoes.create_request(comum, NewItemRequest("Mesa"), 1, "300")
    r3, _ = solicitacoes.create_request(comum, ExistingItemRef(item.id), 1, "1.00")
    solicitacoes.update_request_status(gestor, r3.id, "REJEITADO", "duplicado")

    results = solicitacoes.approve_requests(gestor, [r1.id, r2.id, r3.id, 404])

    assert [r["ok"] for r in results] == [True, True, False, False]
    assert results[2]["code"] == "transicao_invalida"
    assert results[3]["code"] == "nao_encontrado"
    assert results[1]["item_id"] is not None


def test_bulk_approval_requires_permission(ctx, comum):
    with pytest.raises(PermissionDeniedError):
        solicitacoes.approve_requests(comum, [1])


# ------------------------- aviso de alto volume -------------------------
def test_high_volume_warning_is_advisory(ctx, comum):
    item = make_item(current_qty=10, min_qty=5)

    _, warning = solicitacoes.create_request(comum, ExistingItemRef(item.id), 20, "1.00")
    assert warning is None

    req, warning = solicitacoes.create_request(comum, ExistingItemRef(item.id), 21, "1.00")
    assert warning == solicitacoes.HIGH_VOLUME_MESSAGE
    assert req.status == PENDENTE


def test_high_volume_warning_skips_new_items():
    assert solicitacoes.high_volume_warning(None, 10_000) is None
