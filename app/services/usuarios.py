import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import User
from app.models.user import ADM_MASTER, ACTIVE_ROLES, COMUM, DESATIVADO, ROLES
from app.permissions import GERENCIAR_USUARIOS, authorize
from app.services.auditoria import add_log
from app.services.helpers import clean_str, transaction

logger = logging.getLogger(__name__)


def _normalize_email(email) -> str:
    return clean_str(email).lower()


def _check_role(role) -> str:
    role = clean_str(role).upper()
    if role not in ROLES:
        raise ValidationError(f"Perfil inválido: {role or '-'}.", field="role", allowed=list(ROLES))
    return role


def _reject_self(actor, u, message):
    if getattr(actor, "id", None) == u.id:
        raise ValidationError(message, user_id=u.id)


def get_user(user_id) -> User:
    u = db.session.get(User, user_id)
    if u is None:
        raise NotFoundError(f"Usuário {user_id} não encontrado.", user_id=user_id)
    return u


def list_users():
    return User.query.order_by(User.id.asc()).all()


def authenticate(email, password) -> User:
    u = User.query.filter_by(email=_normalize_email(email)).first()
    if not u:
        raise AuthenticationError("Usuário não encontrado")
    if not u.is_active:
        raise AuthenticationError("Usuário desativado.")
    if not u.check_password(password):
        raise AuthenticationError("Senha incorreta")
    return u


def create_user(actor, data: dict) -> User:
    authorize(actor, GERENCIAR_USUARIOS)

    name = clean_str(data.get("name"))
    email = _normalize_email(data.get("email"))
    password = data.get("password") or ""
    if not name or not email or not password:
        raise ValidationError("Preencha nome, e-mail e senha.")

    role = _check_role(data.get("role") or COMUM)
    if role not in ACTIVE_ROLES:
        raise ValidationError("Não é possível criar um usuário já desativado.", field="role")

    if User.query.filter_by(email=email).first():
        raise ConflictError("Email duplicado", email=email)

    u = User(
        name=name,
        email=email,
        role=role,
        department=clean_str(data.get("department")) or None,
        is_active=True,
    )
    u.set_password(password)

    try:
        with transaction():
            db.session.add(u)
            db.session.flush()
            add_log("Novo Usuário", f"Cadastrou o usuário {u.name} ({u.role})", actor)
    except IntegrityError as exc:
        raise ConflictError("Email duplicado", email=email) from exc
    return u


def update_user(actor, user_id, data: dict) -> User:
    """Atualização parcial de name, role, department e is_active."""
    authorize(actor, GERENCIAR_USUARIOS)
    u = get_user(user_id)
    previous_role = u.role

    role = _check_role(data["role"]) if data.get("role") is not None else None
    is_active = data.get("is_active")
    if is_active is not None and not isinstance(is_active, bool):
        raise ValidationError("Campo 'is_active' deve ser booleano.", field="is_active")
    if is_active is False or (role is not None and role != u.role):
        _reject_self(actor, u, "Você não pode alterar o próprio perfil ou status.")

    with transaction():
        if "name" in data:
            name = clean_str(data.get("name"))
            if not name:
                raise ValidationError("Nome é obrigatório.", field="name")
            u.name = name
        if "department" in data:
            u.department = clean_str(data.get("department")) or None

        if is_active is False or role == DESATIVADO:
            u.deactivate()
        elif not u.is_active:
            # reativação sempre volta como COMUM
            if role is not None and role != COMUM:
                raise ValidationError("Reative o usuário antes de alterar o perfil.", field="role")
            if is_active is True or role == COMUM:
                u.activate()
        elif role is not None:
            u.role = role

        add_log("Edição de Usuário", f"Editou o usuário {u.name}", actor, previous_status=previous_role)
    return u


def deactivate_user(actor, user_id) -> User:
    authorize(actor, GERENCIAR_USUARIOS)
    u = get_user(user_id)
    _reject_self(actor, u, "Você não pode desativar o próprio usuário.")
    previous_role = u.role
    with transaction():
        u.deactivate()
        add_log("Usuário Desativado", f"Desativou o usuário {u.name}", actor, previous_status=previous_role)
    return u


def activate_user(actor, user_id) -> User:
    authorize(actor, GERENCIAR_USUARIOS)
    u = get_user(user_id)
    previous_role = u.role
    with transaction():
        u.activate()
        add_log("Usuário Reativado", f"Reativou o usuário {u.name}", actor, previous_status=previous_role)
    return u


def delete_user(actor, user_id):
    authorize(actor, GERENCIAR_USUARIOS)
    u = get_user(user_id)
    _reject_self(actor, u, "Você não pode excluir o próprio usuário.")
    description = f"Removeu o usuário {u.name} ({u.email})"
    with transaction():
        db.session.delete(u)
        add_log("Exclusão de Usuário", description, actor)


def reset_password(actor, user_id) -> User:
    authorize(actor, GERENCIAR_USUARIOS)
    u = get_user(user_id)
    _reject_self(actor, u, "Use a troca de senha para alterar a própria senha.")
    with transaction():
        u.set_password(current_app.config["DEFAULT_RESET_PASSWORD"])
        add_log("Reset de Senha", f"Redefiniu a senha de {u.email}", actor)
    return u


def change_password(actor, current_password, new_password, confirm) -> User:
    if not actor.check_password(current_password):
        raise ValidationError("Senha atual incorreta.", field="senha_atual")
    if not new_password or new_password != confirm:
        raise ValidationError("As senhas não coincidem.", field="nova_senha")

    with transaction():
        actor.set_password(new_password)
        add_log("Troca de Senha", f"{actor.name} alterou a própria senha", actor)
    return actor


def seed_admin():
    """Cria o ADM_MASTER padrão quando não há nenhum usuário."""
    if User.query.first():
        return None

    cfg = current_app.config
    u = User(
        name=cfg["DEFAULT_ADMIN_NAME"],
        email=cfg["DEFAULT_ADMIN_EMAIL"].lower(),
        role=ADM_MASTER,
        department="TI",
        is_active=True,
    )
    u.set_password(cfg["DEFAULT_ADMIN_PASSWORD"])
    with transaction():
        db.session.add(u)
    logger.info("Admin padrão criado: %s", u.email)
    return u
