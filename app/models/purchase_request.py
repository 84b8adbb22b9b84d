from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from app.extensions import db

PENDENTE = "PENDENTE"
APROVADO = "APROVADO"
REJEITADO = "REJEITADO"
COMPRADO = "COMPRADO"

REQUEST_STATUSES = (PENDENTE, APROVADO, REJEITADO, COMPRADO)

ITEM_REMOVIDO = "item removido"


@dataclass(frozen=True)
class ExistingItemRef:
    """Pedido de reposição de um item já cadastrado."""
    item_id: int


@dataclass(frozen=True)
class NewItemRequest:
    """Pedido de um item ainda fora do estoque; a aprovação o cadastra."""
    name: str
    category: Optional[str] = None


RequestTarget = Union[ExistingItemRef, NewItemRequest]


class PurchaseRequest(db.Model):
    __tablename__ = "requests"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    # sem FK: o pedido mantém a referência mesmo depois que o item é excluído
    item_id = db.Column(db.Integer, index=True)
    custom_item_name = db.Column(db.String(150))
    custom_category = db.Column(db.String(100))

    requester_id = db.Column(db.Integer)
    requester_name = db.Column(db.String(100))

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    observation = db.Column(db.Text)

    status = db.Column(db.String(50), nullable=False, default=PENDENTE)  # PENDENTE | APROVADO | REJEITADO | COMPRADO
    rejection_reason = db.Column(db.Text)
    date = db.Column(db.Date, nullable=False, default=date.today)

    item = db.relationship(
        "InventoryItem",
        primaryjoin="foreign(PurchaseRequest.item_id) == InventoryItem.id",
        viewonly=True,
    )

    @property
    def target(self) -> RequestTarget:
        if self.item_id is not None:
            return ExistingItemRef(self.item_id)
        return NewItemRequest(self.custom_item_name, self.custom_category)

    @target.setter
    def target(self, value: RequestTarget):
        if isinstance(value, ExistingItemRef):
            self.item_id = value.item_id
            self.custom_item_name = None
            self.custom_category = None
        else:
            self.item_id = None
            self.custom_item_name = value.name
            self.custom_category = value.category

    @property
    def is_novel(self) -> bool:
        return self.item_id is None and bool(self.custom_item_name)

    @property
    def item_name(self) -> str:
        if self.item_id is not None:
            return self.item.name if self.item is not None else ITEM_REMOVIDO
        return self.custom_item_name or "Item Desconhecido"

    @property
    def category(self) -> str:
        if self.item is not None:
            return self.item.category or "Outros"
        return self.custom_category or "Outros"

    @property
    def total_value(self) -> Decimal:
        return Decimal(self.unit_price or 0) * int(self.quantity or 0)

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "custom_item_name": self.custom_item_name,
            "custom_category": self.custom_category,
            "item_name": self.item_name,
            "requester_id": self.requester_id,
            "requester_name": self.requester_name,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price or 0),
            "observation": self.observation,
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "date": self.date.isoformat() if self.date else None,
        }

    def __repr__(self):
        return f"<PurchaseRequest {self.id} {self.status}>"
