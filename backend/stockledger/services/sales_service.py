"""
Sales history - read side of committed checkouts.

Sales are written only by checkout_service.checkout(); nothing here mutates.
"""

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import SaleNotFound
from ..models import Sale, SaleLine


def _with_lines(query):
    return query.options(selectinload(Sale.lines).joinedload(SaleLine.product))


def list_sales(*, limit: int | None = None) -> list[Sale]:
    """Committed sales, newest first, lines and products preloaded."""
    q = _with_lines(db.session.query(Sale)).order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit is not None:
        q = q.limit(max(1, limit))
    return q.all()


def get_sale(sale_id: int) -> Sale:
    sale = _with_lines(db.session.query(Sale).filter_by(id=sale_id)).first()
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale
