from flask import request, jsonify
from flask_login import login_user, logout_user, current_user, login_required

from app.services import usuarios
from . import auth_bp


def _public_user(u):
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "department": u.department,
    }


@auth_bp.post("/login")
def login_post():
    data = request.get_json(silent=True) or {}
    u = usuarios.authenticate(data.get("email"), data.get("password"))
    login_user(u)
    return jsonify(_public_user(u))


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Você saiu do sistema."})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_public_user(current_user))


@auth_bp.post("/trocar-senha")
@login_required
def trocar_senha():
    data = request.get_json(silent=True) or {}
    usuarios.change_password(
        current_user,
        data.get("senha_atual"),
        data.get("nova_senha"),
        data.get("confirmar"),
    )
    return jsonify({"message": "Senha alterada com sucesso."})
