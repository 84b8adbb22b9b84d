from flask import request, jsonify
from flask_login import current_user, login_required

from app.errors import ValidationError
from app.permissions import VER_ESTOQUE, perm_required
from app.services import estoque, solicitacoes

from . import estoque_bp


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Corpo da requisição deve ser um objeto JSON.")
    return data


# ------------------------- dashboard -------------------------
@estoque_bp.get("/dashboard")
@login_required
@perm_required(VER_ESTOQUE)
def dashboard():
    category = (request.args.get("categoria") or "").strip()
    if category == "Todas":
        category = ""
    metrics = estoque.dashboard_metrics(category or None)
    metrics["categories"] = ["Todas"] + estoque.categories()
    return jsonify(metrics)


# ------------------------- estoque -------------------------
@estoque_bp.get("/inventory")
@login_required
@perm_required(VER_ESTOQUE)
def inventory_lista():
    items = estoque.list_items(
        q=request.args.get("q"),
        category=(request.args.get("category") or "").strip() or None,
        status=(request.args.get("status") or "").strip() or None,
    )
    return jsonify([it.to_dict(display_status=status) for it, status in items])


@estoque_bp.get("/inventory/next-sku")
@login_required
@perm_required(VER_ESTOQUE)
def inventory_next_sku():
    return jsonify({"sku": estoque.generate_next_sku()})


@estoque_bp.get("/inventory/<int:item_id>")
@login_required
@perm_required(VER_ESTOQUE)
def inventory_detalhe(item_id):
    return jsonify(estoque.item_payload(estoque.get_item(item_id)))


@estoque_bp.post("/inventory")
@login_required
def inventory_novo():
    item = estoque.add_item(current_user, _json_body())
    return jsonify(estoque.item_payload(item)), 201


@estoque_bp.put("/inventory/<int:item_id>")
@login_required
def inventory_editar(item_id):
    item = estoque.update_item(current_user, item_id, _json_body())
    return jsonify(estoque.item_payload(item))


@estoque_bp.post("/inventory/<int:item_id>/retirada")
@login_required
def inventory_retirada(item_id):
    data = _json_body()
    item = estoque.withdraw_item(current_user, item_id, data.get("quantity"), data.get("reason"))
    return jsonify(estoque.item_payload(item))


@estoque_bp.delete("/inventory/<int:item_id>")
@login_required
def inventory_excluir(item_id):
    estoque.delete_item(current_user, item_id)
    return jsonify({"message": "Item removido"})


# ------------------------- pedidos -------------------------
@estoque_bp.get("/requests")
@login_required
@perm_required(VER_ESTOQUE)
def requests_lista():
    status = (request.args.get("status") or "").strip().upper() or None
    reqs = solicitacoes.list_requests(status=status)
    return jsonify([r.to_dict() for r in reqs])


@estoque_bp.get("/requests/<int:request_id>")
@login_required
@perm_required(VER_ESTOQUE)
def requests_detalhe(request_id):
    return jsonify(solicitacoes.get_request(request_id).to_dict())


@estoque_bp.post("/requests")
@login_required
def requests_novo():
    data = _json_body()
    target = solicitacoes.parse_target(data)
    req, warning = solicitacoes.create_request(
        current_user,
        target,
        data.get("quantity"),
        data.get("unit_price", 0),
        data.get("observation"),
    )
    body = req.to_dict()
    body["warning"] = warning
    return jsonify(body), 201


@estoque_bp.put("/requests/<int:request_id>")
@login_required
def requests_status(request_id):
    data = _json_body()
    req = solicitacoes.update_request_status(
        current_user,
        request_id,
        data.get("status"),
        data.get("rejection_reason"),
    )
    return jsonify(req.to_dict())


@estoque_bp.post("/requests/aprovar")
@login_required
def requests_aprovar_lote():
    ids = _json_body().get("ids")
    if not isinstance(ids, list) or not ids:
        raise ValidationError("Informe a lista de pedidos em 'ids'.", field="ids")
    results = solicitacoes.approve_requests(current_user, ids)
    return jsonify({"results": results})
