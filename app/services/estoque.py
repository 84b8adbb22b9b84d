"""Operações de estoque: cadastro, edição, retirada, exclusão e leitura.

O status gravado (Normal/Crítico) é recalculado em toda escrita; o status
exibido ("Em Reposição") é derivado a cada leitura a partir dos pedidos
APROVADOS em aberto.
"""

import logging
import math
import re
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from app.extensions import db
from app.models import InventoryItem, PurchaseRequest
from app.models.inventory_item import UNITS, CRITICO, derive_display_status
from app.models.purchase_request import APROVADO, PENDENTE
from app.permissions import GERENCIAR_ESTOQUE, authorize
from app.services.auditoria import add_log
from app.services.helpers import clean_str, to_decimal, to_int, transaction

logger = logging.getLogger(__name__)


# ------------------------- SKU -------------------------
def next_sku(skus, prefix: str = "ND-") -> str:
    """Próximo SKU sequencial: maior sufixo numérico + 1, com 3 dígitos."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)")
    numbers = []
    for sku in skus:
        m = pattern.match(sku or "")
        if m:
            numbers.append(int(m.group(1)))
    return f"{prefix}{max(numbers, default=0) + 1:03d}"


def generate_next_sku() -> str:
    prefix = current_app.config.get("SKU_PREFIX", "ND-")
    skus = db.session.scalars(
        select(InventoryItem.sku).where(InventoryItem.sku.like(f"{prefix}%"))
    ).all()
    return next_sku(skus, prefix)


# ------------------------- status exibido -------------------------
def replenishing_item_ids() -> set:
    rows = db.session.scalars(
        select(PurchaseRequest.item_id)
        .where(PurchaseRequest.status == APROVADO, PurchaseRequest.item_id.is_not(None))
        .distinct()
    ).all()
    return set(rows)


def display_status(item: InventoryItem, replenishing_ids=None) -> str:
    if replenishing_ids is None:
        has_approved = db.session.query(
            PurchaseRequest.query.filter_by(item_id=item.id, status=APROVADO).exists()
        ).scalar()
    else:
        has_approved = item.id in replenishing_ids
    return derive_display_status(item.status, bool(has_approved))


def item_payload(item: InventoryItem, replenishing_ids=None) -> dict:
    return item.to_dict(display_status=display_status(item, replenishing_ids))


# ------------------------- leitura -------------------------
def get_item(item_id) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} não encontrado.", item_id=item_id)
    return item


def list_items(q=None, category=None, status=None):
    """Retorna pares (item, status exibido), ordenados por id."""
    query = InventoryItem.query
    q = clean_str(q)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(InventoryItem.name.ilike(like), InventoryItem.sku.ilike(like)))
    if category:
        query = query.filter(InventoryItem.category == category)

    items = query.order_by(InventoryItem.id.asc()).all()
    replenishing = replenishing_item_ids()
    result = [(it, display_status(it, replenishing)) for it in items]
    if status:
        result = [(it, st) for it, st in result if st == status]
    return result


def categories():
    rows = db.session.scalars(select(InventoryItem.category).distinct()).all()
    return sorted(c for c in rows if c)


def dashboard_metrics(category=None) -> dict:
    items = InventoryItem.query.all()
    requests = PurchaseRequest.query.all()
    if category:
        items = [i for i in items if i.category == category]
        requests = [r for r in requests if r.category == category]

    total_min = sum(i.min_qty for i in items)
    return {
        "critical_items_count": sum(1 for i in items if i.status == CRITICO),
        "pending_requests_count": sum(1 for r in requests if r.status == PENDENTE),
        "total_stock_value": float(sum((i.total_value for i in items), Decimal("0"))),
        "avg_min_qty": math.ceil(total_min / len(items)) if items else 0,
    }


# ------------------------- escrita -------------------------
def _item_fields(data: dict, partial: bool) -> dict:
    fields = {}

    if "name" in data or not partial:
        name = clean_str(data.get("name"))
        if not name:
            raise ValidationError("Nome do item é obrigatório.", field="name")
        fields["name"] = name

    if "category" in data or not partial:
        fields["category"] = clean_str(data.get("category")) or current_app.config["DEFAULT_CATEGORY"]

    if "current_qty" in data or not partial:
        qty = to_int(data.get("current_qty", 0), "current_qty")
        if qty < 0:
            raise ValidationError("Quantidade atual não pode ser negativa.", field="current_qty")
        fields["current_qty"] = qty

    if "min_qty" in data or not partial:
        min_qty = to_int(data.get("min_qty", current_app.config["DEFAULT_MIN_QTY"]), "min_qty")
        if min_qty < 1:
            raise ValidationError("O Estoque Mínimo deve ser pelo menos 1.", field="min_qty")
        fields["min_qty"] = min_qty

    if "price" in data or not partial:
        price = to_decimal(data.get("price", 0), "price")
        if price < 0:
            raise ValidationError("Preço não pode ser negativo.", field="price")
        fields["price"] = price

    if "unit" in data or not partial:
        unit = clean_str(data.get("unit") or "UN").upper()
        if unit not in UNITS:
            raise ValidationError(f"Unidade inválida: {unit}.", field="unit", allowed=list(UNITS))
        fields["unit"] = unit

    return fields


def add_item(actor, data: dict) -> InventoryItem:
    authorize(actor, GERENCIAR_ESTOQUE)
    fields = _item_fields(data, partial=False)

    sku = clean_str(data.get("sku")) or generate_next_sku()
    if InventoryItem.query.filter_by(sku=sku).first():
        raise ConflictError(f"SKU {sku} já cadastrado.", sku=sku)

    item = InventoryItem(sku=sku, **fields)
    item.refresh_status()

    try:
        with transaction():
            db.session.add(item)
            db.session.flush()
            add_log("Novo Item", f"Cadastrou {item.name} ({item.sku})", actor)
    except IntegrityError as exc:
        raise ConflictError(f"SKU {sku} já cadastrado.", sku=sku) from exc
    return item


def update_item(actor, item_id, data: dict) -> InventoryItem:
    authorize(actor, GERENCIAR_ESTOQUE)
    item = get_item(item_id)
    fields = _item_fields(data, partial=True)

    with transaction():
        for key, value in fields.items():
            setattr(item, key, value)
        item.refresh_status()
        add_log("Edição de Item", f"Editou item {item.name}", actor)
    return item


def withdraw_item(actor, item_id, quantity, reason=None) -> InventoryItem:
    authorize(actor, GERENCIAR_ESTOQUE)
    qty = to_int(quantity, "quantity")
    if qty <= 0:
        raise ValidationError("Quantidade deve ser maior que zero.", field="quantity")

    item = get_item(item_id)
    if qty > item.current_qty:
        raise InsufficientStockError(
            "Quantidade de retirada excede o estoque atual.",
            item_id=item.id,
            available=item.current_qty,
            requested=qty,
        )

    reason = clean_str(reason) or "não informado"
    with transaction():
        item.current_qty = item.current_qty - qty
        item.refresh_status()
        add_log("Saída de Estoque", f"Retirou {qty} do item {item.name}. Motivo: {reason}", actor)
    return item


def delete_item(actor, item_id):
    authorize(actor, GERENCIAR_ESTOQUE)
    item = get_item(item_id)
    description = f"Removeu item {item.name} ({item.sku})"

    with transaction():
        db.session.delete(item)
        add_log("Exclusão de Item", description, actor)
