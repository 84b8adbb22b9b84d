"""Ciclo de vida dos pedidos de compra.

    PENDENTE -> APROVADO -> COMPRADO
    PENDENTE -> REJEITADO

A aprovação de um pedido de item novo cadastra o item e vincula o pedido na
mesma transação; a compra soma a quantidade ao saldo do item vinculado uma
única vez.
"""

import logging
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.extensions import db
from app.models import ExistingItemRef, InventoryItem, NewItemRequest, PurchaseRequest
from app.models.purchase_request import (
    APROVADO,
    COMPRADO,
    PENDENTE,
    REJEITADO,
    REQUEST_STATUSES,
)
from app.permissions import APROVAR_SOLICITACAO, CRIAR_SOLICITACAO, authorize
from app.services.auditoria import add_log
from app.services.estoque import generate_next_sku, get_item
from app.services.helpers import clean_str, to_decimal, to_int, transaction

logger = logging.getLogger(__name__)

TRANSITIONS = {
    (PENDENTE, APROVADO),
    (PENDENTE, REJEITADO),
    (APROVADO, COMPRADO),
}

HIGH_VOLUME_MESSAGE = "Alto volume solicitado. Por favor, verifique se esta é uma reposição urgente."


class _SkuCollision(Exception):
    def __init__(self, sku):
        super().__init__(sku)
        self.sku = sku


# ------------------------- helpers -------------------------
def parse_target(data: dict):
    """Converte item_id / custom_item_name do payload na variante do pedido."""
    raw_item_id = data.get("item_id")
    has_item = raw_item_id not in (None, "")
    custom_name = clean_str(data.get("custom_item_name"))

    if has_item and custom_name:
        raise ValidationError("Informe um item do estoque ou um item novo, não ambos.")
    if not has_item and not custom_name:
        raise ValidationError("Informe um item do estoque ou o nome de um item novo.")

    if has_item:
        return ExistingItemRef(to_int(raw_item_id, "item_id"))
    return NewItemRequest(custom_name, clean_str(data.get("custom_category")) or None)


def high_volume_warning(item, quantity: int):
    # Heurística herdada da tela de pedidos: "média máxima" ~ 3x o mínimo,
    # alerta acima do dobro disso. Apenas aviso, nunca bloqueia o pedido.
    if item is None:
        return None
    threshold = item.min_qty * 3 * 2
    if item.current_qty + quantity > threshold:
        return HIGH_VOLUME_MESSAGE
    return None


def get_request(request_id) -> PurchaseRequest:
    req = db.session.get(PurchaseRequest, request_id)
    if req is None:
        raise NotFoundError(f"Pedido {request_id} não encontrado.", request_id=request_id)
    return req


def list_requests(status=None, requester_id=None, start=None, end=None, category=None):
    q = PurchaseRequest.query
    if status:
        q = q.filter(PurchaseRequest.status == status)
    if requester_id is not None:
        q = q.filter(PurchaseRequest.requester_id == requester_id)
    if start:
        q = q.filter(PurchaseRequest.date >= start)
    if end:
        q = q.filter(PurchaseRequest.date <= end)

    requests = q.order_by(PurchaseRequest.id.desc()).all()
    if category:
        requests = [r for r in requests if r.category == category]
    return requests


# ------------------------- criação -------------------------
def create_request(actor, target, quantity, unit_price, observation=None):
    """Cria um pedido PENDENTE. Retorna ``(pedido, aviso_alto_volume)``."""
    authorize(actor, CRIAR_SOLICITACAO)

    qty = to_int(quantity, "quantity")
    if qty <= 0:
        raise ValidationError("Quantidade deve ser maior que zero.", field="quantity")
    price = to_decimal(unit_price, "unit_price")
    if price < 0:
        raise ValidationError("Preço unitário não pode ser negativo.", field="unit_price")

    item = None
    if isinstance(target, ExistingItemRef):
        item = get_item(target.item_id)
        item_name = item.name
    elif isinstance(target, NewItemRequest) and clean_str(target.name):
        item_name = clean_str(target.name)
        target = NewItemRequest(item_name, clean_str(target.category) or None)
    else:
        raise ValidationError("Informe um item do estoque ou o nome de um item novo.")

    warning = high_volume_warning(item, qty)

    req = PurchaseRequest(
        requester_id=getattr(actor, "id", None),
        requester_name=getattr(actor, "name", None),
        quantity=qty,
        unit_price=price,
        observation=clean_str(observation) or None,
        status=PENDENTE,
        date=date.today(),
    )
    req.target = target

    with transaction():
        db.session.add(req)
        db.session.flush()
        add_log("Nova Solicitação", f"Solicitou {qty}x {item_name}", actor)

    if warning:
        logger.info("Pedido #%s: %s", req.id, warning)
    return req, warning


# ------------------------- transições -------------------------
def update_request_status(actor, request_id, new_status, reason=None) -> PurchaseRequest:
    authorize(actor, APROVAR_SOLICITACAO)

    new_status = clean_str(new_status).upper()
    if new_status not in REQUEST_STATUSES:
        raise ValidationError(f"Status inválido: {new_status or '-'}.", field="status")

    attempts = max(1, int(current_app.config.get("SKU_MAX_ATTEMPTS", 3)))
    for attempt in range(1, attempts + 1):
        try:
            return _apply_transition(actor, request_id, new_status, reason)
        except _SkuCollision as exc:
            logger.warning("SKU %s já em uso ao aprovar pedido #%s (tentativa %d/%d)",
                           exc.sku, request_id, attempt, attempts)

    raise ConflictError("Não foi possível gerar um SKU único para o novo item.", request_id=request_id)


def _apply_transition(actor, request_id, new_status, reason):
    req = get_request(request_id)
    previous = req.status

    if new_status == COMPRADO and previous == COMPRADO:
        logger.info("Pedido #%s já está COMPRADO; nada a fazer", req.id)
        return req

    if (previous, new_status) not in TRANSITIONS:
        raise InvalidTransitionError(
            f"Transição inválida: {previous} -> {new_status}.",
            from_status=previous,
            to_status=new_status,
        )

    if new_status == REJEITADO:
        reason = clean_str(reason)
        if not reason:
            raise ValidationError("Informe o motivo da rejeição.", field="rejection_reason")

    item = None
    if new_status == COMPRADO:
        item = db.session.get(InventoryItem, req.item_id) if req.item_id is not None else None
        if item is None:
            raise NotFoundError("O item vinculado ao pedido não existe mais.", item_id=req.item_id)

    with transaction():
        if new_status == APROVADO and req.is_novel:
            item = _provision_item(actor, req)
            req.item_id = item.id
        elif new_status == COMPRADO:
            item.current_qty = item.current_qty + req.quantity
            item.refresh_status()
        elif new_status == REJEITADO:
            req.rejection_reason = reason

        req.status = new_status

        description = f"Mudou status do pedido #{req.id} para {new_status}"
        if new_status == REJEITADO:
            description += f". Motivo: {reason}"
        add_log("Atualização Pedido", description, actor, previous_status=previous)

    return req


def _provision_item(actor, req) -> InventoryItem:
    sku = generate_next_sku()
    item = InventoryItem(
        name=req.custom_item_name,
        sku=sku,
        category=req.custom_category or current_app.config["DEFAULT_CATEGORY"],
        current_qty=0,
        min_qty=current_app.config["DEFAULT_MIN_QTY"],
        price=req.unit_price or 0,
        unit="UN",
    )
    item.refresh_status()
    db.session.add(item)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise _SkuCollision(sku) from exc

    add_log("Novo Item", f"Cadastrou {item.name} ({item.sku}) a partir do pedido #{req.id}", actor)
    return item


def approve_requests(actor, request_ids):
    """Aprova vários pedidos; cada um em sua própria transação."""
    authorize(actor, APROVAR_SOLICITACAO)
    results = []
    for rid in request_ids:
        try:
            req = update_request_status(actor, to_int(rid, "ids"), APROVADO)
        except (ValidationError, NotFoundError, InvalidTransitionError, ConflictError) as err:
            results.append({"id": rid, "ok": False, "code": err.code, "error": err.message})
        else:
            results.append({"id": req.id, "ok": True, "status": req.status, "item_id": req.item_id})
    return results
