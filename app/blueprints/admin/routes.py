from flask import request, jsonify
from flask_login import login_required, current_user

from app.permissions import GERENCIAR_USUARIOS, VER_RELATORIOS, perm_required
from app.services import usuarios
from app.services.auditoria import list_logs
from app.services.helpers import parse_date, to_int
from . import admin_bp


# LISTA DE USUÁRIOS
@admin_bp.get("/users")
@login_required
@perm_required(GERENCIAR_USUARIOS)
def usuarios_lista():
    return jsonify([u.to_dict() for u in usuarios.list_users()])


# NOVO USUÁRIO
@admin_bp.post("/users")
@login_required
def usuario_novo():
    data = request.get_json(silent=True) or {}
    u = usuarios.create_user(current_user, data)
    return jsonify(u.to_dict()), 201


# EDITAR USUÁRIO
@admin_bp.put("/users/<int:user_id>")
@login_required
def usuario_editar(user_id):
    data = request.get_json(silent=True) or {}
    u = usuarios.update_user(current_user, user_id, data)
    return jsonify(u.to_dict())


# EXCLUIR
@admin_bp.delete("/users/<int:user_id>")
@login_required
def usuario_excluir(user_id):
    usuarios.delete_user(current_user, user_id)
    return jsonify({"message": "Removido"})


# RESETAR SENHA
@admin_bp.post("/users/<int:user_id>/reset_senha")
@login_required
def usuario_reset_senha(user_id):
    u = usuarios.reset_password(current_user, user_id)
    return jsonify({"message": f"Senha de {u.email} redefinida."})


# ATIVAR
@admin_bp.post("/users/<int:user_id>/ativar")
@login_required
def usuario_ativar(user_id):
    u = usuarios.activate_user(current_user, user_id)
    return jsonify(u.to_dict())


# INATIVAR
@admin_bp.post("/users/<int:user_id>/inativar")
@login_required
def usuario_inativar(user_id):
    u = usuarios.deactivate_user(current_user, user_id)
    return jsonify(u.to_dict())


# LOG DO SISTEMA
@admin_bp.get("/logs")
@login_required
@perm_required(VER_RELATORIOS)
def logs_lista():
    user_id = request.args.get("user_id")
    logs = list_logs(
        start=parse_date(request.args.get("de")),
        end=parse_date(request.args.get("ate")),
        user_id=to_int(user_id, "user_id") if user_id else None,
    )
    return jsonify([log.to_dict() for log in logs])
