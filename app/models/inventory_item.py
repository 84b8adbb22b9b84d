from decimal import Decimal

from app.extensions import db

NORMAL = "Normal"
CRITICO = "Crítico"
EM_REPOSICAO = "Em Reposição"

UNITS = ("UN", "KG", "CX")


def stored_status(current_qty, min_qty) -> str:
    """Status gravado: crítico quando o saldo está no mínimo ou abaixo."""
    return CRITICO if int(current_qty) <= int(min_qty) else NORMAL


def derive_display_status(status: str, has_approved_request: bool) -> str:
    """Status exibido; "Em Reposição" nunca é gravado, só derivado na leitura."""
    if status == NORMAL:
        return NORMAL
    return EM_REPOSICAO if has_approved_request else CRITICO


class InventoryItem(db.Model):
    __tablename__ = "inventory"
    # ids nunca são reaproveitados: pedidos guardam item_id sem FK
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    sku = db.Column(db.String(50), nullable=False, unique=True)
    category = db.Column(db.String(100))
    current_qty = db.Column(db.Integer, nullable=False, default=0)
    min_qty = db.Column(db.Integer, nullable=False, default=5)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    unit = db.Column(db.String(20), nullable=False, default="UN")
    status = db.Column(db.String(50), nullable=False, default=CRITICO)  # Normal | Crítico

    def refresh_status(self):
        self.status = stored_status(self.current_qty, self.min_qty)

    @property
    def total_value(self) -> Decimal:
        return Decimal(self.price or 0) * int(self.current_qty or 0)

    def to_dict(self, display_status=None):
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "current_qty": self.current_qty,
            "min_qty": self.min_qty,
            "price": float(self.price or 0),
            "unit": self.unit,
            "status": self.status,
            "display_status": display_status or self.status,
        }

    def __repr__(self):
        return f"<InventoryItem {self.sku} {self.name}>"
