import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.errors import StoreError, ValidationError
from app.extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def transaction():
    """
    Unidade de trabalho sobre ``db.session``:
    - commit ao sair
    - rollback em qualquer exceção
    - falhas do banco viram StoreError (IntegrityError segue para quem chamou)
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Falha no banco de dados")
        raise StoreError("Falha ao acessar o banco de dados.") from exc
    except Exception:
        db.session.rollback()
        raise


def clean_str(v):
    return (str(v) if v is not None else "").strip()


# limites das colunas Integer e Numeric(10, 2)
MAX_INT = 2**31 - 1
MAX_DECIMAL = Decimal("99999999.99")


def to_int(v, field: str) -> int:
    msg = f"Campo '{field}' deve ser um número inteiro."
    if isinstance(v, bool):
        raise ValidationError(msg, field=field)
    try:
        d = Decimal(str(v).strip().replace(",", "."))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(msg, field=field)
    if not d.is_finite() or d != d.to_integral_value():
        raise ValidationError(msg, field=field)
    if abs(d) > MAX_INT:
        raise ValidationError(f"Campo '{field}' fora do limite permitido.", field=field)
    return int(d)


def to_decimal(v, field: str) -> Decimal:
    msg = f"Campo '{field}' deve ser numérico."
    if isinstance(v, bool):
        raise ValidationError(msg, field=field)
    try:
        d = Decimal(str(v).strip().replace(",", "."))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(msg, field=field)
    if not d.is_finite():
        raise ValidationError(msg, field=field)
    if abs(d) > MAX_DECIMAL:
        raise ValidationError(f"Campo '{field}' fora do limite permitido.", field=field)
    return d.quantize(Decimal("0.01"))


def parse_date(s):
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Data inválida: {s}. Use AAAA-MM-DD.")
