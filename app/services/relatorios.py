"""Relatórios de estoque, pedidos e log, com exportação CSV / XLSX / PDF.

O CSV segue o layout usado pela planilha do setor de compras: BOM UTF-8,
separador ``;`` e aspas apenas em campos que contêm ``;`` ou quebra de linha.
"""

from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from app.errors import NotFoundError, ValidationError
from app.permissions import VER_RELATORIOS, authorize
from app.services.auditoria import add_log, list_logs
from app.services.estoque import list_items
from app.services.helpers import transaction
from app.services.solicitacoes import list_requests

BOM = "\ufeff"

REPORT_TITLES = {
    "estoque": "Estoque Atual",
    "pedidos": "Histórico de Pedidos",
    "logs": "Log de Movimentações",
}

FILE_PREFIXES = {
    "estoque": "Relatorio_Estoque",
    "pedidos": "Relatorio_Pedidos",
    "logs": "Relatorio_Logs",
}

MIMETYPES = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


# =========================
# Helpers
# =========================
def _d(v) -> Decimal:
    if v is None:
        return Decimal("0")
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


def _text(v) -> str:
    if v is None:
        return ""
    if isinstance(v, Decimal):
        return f"{v:.2f}"
    return str(v)


def json_rows(rows):
    return [[float(c) if isinstance(c, Decimal) else c for c in row] for row in rows]


def _csv_field(v) -> str:
    s = _text(v)
    if ";" in s or "\n" in s:
        return '"' + s.replace('"', '""') + '"'
    return s


# =========================
# Montagem dos relatórios
# =========================
def stock_report(category=None, status=None):
    headers = ["SKU", "Item", "Categoria", "Qtd Atual", "Unidade", "Preço Unit", "Valor Total", "Status"]
    rows = []
    for item, display in list_items(category=category, status=status):
        rows.append([
            item.sku,
            item.name,
            item.category,
            item.current_qty,
            item.unit,
            _d(item.price),
            item.total_value,
            display,
        ])
    return headers, rows


def orders_report(start=None, end=None, requester_id=None, category=None):
    headers = ["ID", "Data", "Solicitante", "Item", "Categoria", "Qtd", "Preço Unit", "Valor Total", "Status", "Observacao"]
    rows = []
    for req in list_requests(requester_id=requester_id, start=start, end=end, category=category):
        rows.append([
            req.id,
            req.date.isoformat() if req.date else "",
            req.requester_name,
            req.item_name,
            req.category,
            req.quantity,
            _d(req.unit_price),
            req.total_value,
            req.status,
            req.observation or "",
        ])
    return headers, rows


def logs_report(start=None, end=None, user_id=None):
    headers = ["Data Hora", "Usuario", "Acao", "Descricao"]
    rows = []
    for log in list_logs(start=start, end=end, user_id=user_id):
        rows.append([
            log.timestamp.strftime("%d/%m/%Y, %H:%M:%S") if log.timestamp else "",
            log.user_name,
            log.action,
            log.description,
        ])
    return headers, rows


def build_report(name: str, filters: dict):
    f = filters or {}
    if name == "estoque":
        return stock_report(category=f.get("category"), status=f.get("status"))
    if name == "pedidos":
        return orders_report(start=f.get("start"), end=f.get("end"),
                             requester_id=f.get("user_id"), category=f.get("category"))
    if name == "logs":
        return logs_report(start=f.get("start"), end=f.get("end"), user_id=f.get("user_id"))
    raise NotFoundError(f"Relatório '{name}' não existe.", report=name)


# =========================
# Exportação
# =========================
def to_csv(headers, rows) -> bytes:
    content = BOM + ";".join(_csv_field(h) for h in headers) + "\n"
    content += "\n".join(";".join(_csv_field(c) for c in row) for row in rows)
    return content.encode("utf-8")


def to_xlsx(title: str, headers, rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    ws.append(headers)
    for row in json_rows(rows):
        ws.append(row)

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def to_pdf(title: str, headers, rows) -> bytes:
    bio = BytesIO()
    c = canvas.Canvas(bio, pagesize=A4)
    w, h = A4

    x = 15 * mm
    y = h - 20 * mm

    c.setFont("Helvetica-Bold", 14)
    c.drawString(x, y, title)
    y -= 10 * mm

    c.setFont("Helvetica", 9)
    c.drawString(x, y, f"Gerado em: {datetime.now().strftime('%d/%m/%Y %H:%M')}")
    y -= 8 * mm

    colw = (w - 30 * mm) / max(1, len(headers))
    maxchars = max(6, int(colw / (1.9 * mm)))

    def _header(y):
        c.setFont("Helvetica-Bold", 8)
        for i, head in enumerate(headers):
            c.drawString(x + i * colw, y, head[:maxchars])
        c.setFont("Helvetica", 8)
        return y - 6 * mm

    y = _header(y)
    for row in rows:
        if y < 20 * mm:
            c.showPage()
            y = _header(h - 20 * mm)
        for i, cell in enumerate(row):
            c.drawString(x + i * colw, y, _text(cell).replace("\n", " ")[:maxchars])
        y -= 5 * mm

    c.showPage()
    c.save()
    return bio.getvalue()


def export_report(actor, name: str, fmt: str, filters: dict = None):
    """Gera o arquivo do relatório e registra a exportação no log.

    Retorna ``(conteúdo, nome_do_arquivo, mimetype)``.
    """
    authorize(actor, VER_RELATORIOS)
    fmt = (fmt or "").lower()
    if fmt not in MIMETYPES:
        raise ValidationError(f"Formato não suportado: {fmt}.", allowed=list(MIMETYPES))

    headers, rows = build_report(name, filters)
    title = REPORT_TITLES[name]

    if fmt == "csv":
        data = to_csv(headers, rows)
    elif fmt == "xlsx":
        data = to_xlsx(title, headers, rows)
    else:
        data = to_pdf(f"Relatório: {title}", headers, rows)

    with transaction():
        add_log(f"Exportação {fmt.upper()}", f"{actor.name} baixou o relatório: {title}", actor)

    filename = f"{FILE_PREFIXES[name]}_{date.today().isoformat()}.{fmt}"
    return data, filename, MIMETYPES[fmt]
