from io import BytesIO

from flask import request, jsonify, send_file
from flask_login import login_required, current_user

from app.permissions import VER_RELATORIOS, perm_required
from app.services import relatorios
from app.services.helpers import parse_date, to_int

from . import relatorios_bp

REPORTS = "any(estoque, pedidos, logs)"
FORMATS = "any(csv, xlsx, pdf)"


# =========================
# Helpers
# =========================
def _filters():
    user_id = (request.args.get("user_id") or "").strip()
    return {
        "category": (request.args.get("categoria") or "").strip() or None,
        "status": (request.args.get("status") or "").strip() or None,
        "start": parse_date(request.args.get("de")),
        "end": parse_date(request.args.get("ate")),
        "user_id": to_int(user_id, "user_id") if user_id else None,
    }


# =========================
# Index
# =========================
@relatorios_bp.get("/")
@login_required
@perm_required(VER_RELATORIOS)
def relatorios_index():
    return jsonify([
        {"name": name, "title": title, "formats": list(relatorios.MIMETYPES)}
        for name, title in relatorios.REPORT_TITLES.items()
    ])


# =========================
# Consulta (JSON)
# =========================
@relatorios_bp.get(f"/<{REPORTS}:name>")
@login_required
@perm_required(VER_RELATORIOS)
def relatorio_consulta(name):
    headers, rows = relatorios.build_report(name, _filters())
    return jsonify({
        "title": relatorios.REPORT_TITLES[name],
        "headers": headers,
        "rows": relatorios.json_rows(rows),
    })


# =========================
# Exportação (CSV / XLSX / PDF)
# =========================
@relatorios_bp.get(f"/<{REPORTS}:name>.<{FORMATS}:fmt>")
@login_required
def relatorio_exportar(name, fmt):
    data, filename, mimetype = relatorios.export_report(current_user, name, fmt, _filters())
    return send_file(
        BytesIO(data),
        as_attachment=True,
        download_name=filename,
        mimetype=mimetype,
    )
