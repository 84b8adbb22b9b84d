from functools import wraps

from flask_login import current_user

from app.errors import AuthenticationError, PermissionDeniedError
from app.models.user import ADM_MASTER, GESTOR, TI, COMUM, DESATIVADO

VER_ESTOQUE = "ver_estoque"
CRIAR_SOLICITACAO = "criar_solicitacao"
APROVAR_SOLICITACAO = "aprovar_solicitacao"
GERENCIAR_ESTOQUE = "gerenciar_estoque"
VER_RELATORIOS = "ver_relatorios"
GERENCIAR_USUARIOS = "gerenciar_usuarios"


# -------------------------------
# Política única de acesso por papel (role)
# -------------------------------
ROLE_PERMS = {

    ADM_MASTER: [
        VER_ESTOQUE,
        CRIAR_SOLICITACAO,
        APROVAR_SOLICITACAO,
        GERENCIAR_ESTOQUE,
        VER_RELATORIOS,
        GERENCIAR_USUARIOS,
    ],

    GESTOR: [
        VER_ESTOQUE,
        CRIAR_SOLICITACAO,
        APROVAR_SOLICITACAO,
        GERENCIAR_ESTOQUE,
        VER_RELATORIOS,
    ],

    TI: [
        VER_ESTOQUE,
        CRIAR_SOLICITACAO,
    ],

    COMUM: [
        VER_ESTOQUE,
        CRIAR_SOLICITACAO,
    ],

    DESATIVADO: [],
}


def has_perm(user, perm_name: str) -> bool:
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    if not user.is_active:
        return False
    return perm_name in ROLE_PERMS.get(user.role, [])


def authorize(user, perm_name: str):
    """Levanta PermissionDeniedError se o usuário não tiver a permissão."""
    if not has_perm(user, perm_name):
        role = getattr(user, "role", None)
        raise PermissionDeniedError("Acesso negado.", permission=perm_name, role=role)


# -------------------------------
# Decorator para rotas
# -------------------------------
def perm_required(perm_name: str):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                raise AuthenticationError("Faça login para continuar.")
            authorize(current_user, perm_name)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
