from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from app.extensions import db

ADM_MASTER = "ADM_MASTER"
GESTOR = "GESTOR"
TI = "TI"
COMUM = "COMUM"
DESATIVADO = "DESATIVADO"

ROLES = (ADM_MASTER, GESTOR, TI, COMUM, DESATIVADO)
ACTIVE_ROLES = (ADM_MASTER, GESTOR, TI, COMUM)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(50), nullable=False, default=COMUM)
    department = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def set_password(self, senha: str):
        self.password_hash = generate_password_hash(senha)

    def check_password(self, senha: str) -> bool:
        return check_password_hash(self.password_hash, senha or "")

    def deactivate(self):
        self.role = DESATIVADO
        self.is_active = False

    def activate(self):
        self.role = COMUM
        self.is_active = True

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "department": self.department,
            "is_active": bool(self.is_active),
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
