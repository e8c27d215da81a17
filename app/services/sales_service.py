"""
Sales service - sale submission and the sales ledger.

Submission runs as a fixed sequence of independent store calls:
header, then line items, then one stock decrement per line. There is no
transaction across the steps. Failures after the header is committed are
collected on the returned SaleSubmission instead of being raised, so the
caller can tell a fully committed sale from a header-only or partially
decremented one.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.exceptions import (
    EmptyCart, MissingContext, NotFoundError, SaleCreationFailed,
    LineItemWriteFailed, StockDecrementFailed, StoreError, ValidationError,
    PosError,
)
from app.models import Sale, SaleItem, SaleStatus, PaymentMethod, Customer
from app.services.cart_service import Cart
from app.services.store import DataStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PosContext:
    """Who is selling, where, and in which currency."""
    branch_id: Optional[int]
    cashier_id: Optional[int]
    currency: Optional[str] = None


class SubmissionOutcome(enum.Enum):
    COMMITTED = 'committed'          # header, all line items and all decrements written
    HEADER_ONLY = 'header_only'      # header written, line items failed
    STOCK_PARTIAL = 'stock_partial'  # header and line items written, some decrements failed


@dataclass
class SaleSubmission:
    """Result of submit_sale."""
    sale: Dict[str, Any]
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    outcome: SubmissionOutcome = SubmissionOutcome.COMMITTED
    errors: List[PosError] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.outcome is SubmissionOutcome.COMMITTED

    def to_dict(self) -> Dict[str, Any]:
        sale = dict(self.sale)
        for key in ('total_amount',):
            if sale.get(key) is not None:
                sale[key] = str(sale[key])
        for key in ('created_at', 'updated_at'):
            if isinstance(sale.get(key), datetime):
                sale[key] = sale[key].isoformat()
        return {
            'sale': sale,
            'line_items': [
                {
                    'product_id': item['product_id'],
                    'quantity': item['quantity'],
                    'unit_price': str(item['unit_price']),
                    'total_price': str(item['total_price']),
                }
                for item in self.line_items
            ],
            'outcome': self.outcome.value,
            'complete': self.is_complete,
            'errors': [error.to_dict() for error in self.errors],
        }


def generate_receipt_number(prefix: str = 'RCP', now: Optional[datetime] = None) -> str:
    """Receipt number: PREFIX-yyyymmddHHMMSS-<8 hex>, readable and collision-resistant."""
    stamp = (now or datetime.now()).strftime('%Y%m%d%H%M%S')
    return f"{prefix}-{stamp}-{uuid.uuid4().hex[:8].upper()}"


def _check_context(context: Optional[PosContext], currency: Optional[str]) -> str:
    missing = []
    if context is None or not context.branch_id:
        missing.append('branch_id')
    if context is None or not context.cashier_id:
        missing.append('cashier_id')
    currency = currency or (context.currency if context else None)
    if not currency:
        missing.append('currency')
    if missing:
        raise MissingContext(missing)
    return currency


def submit_sale(
    store: DataStore,
    cart: Cart,
    context: PosContext,
    payment_method: Any,
    currency: Optional[str] = None,
    customer_id: Optional[int] = None,
    on_complete: Optional[Callable[[Dict[str, Any]], None]] = None,
    receipt_prefix: str = 'RCP',
) -> SaleSubmission:
    """
    Complete a sale from the cart.

    Steps:
        1. Validate and generate the receipt number
        2. Insert the sale header (status completed, total = cart total)
        3. Insert one sale item per cart line
        4. Decrement stock once per line (independent calls, no retry)
        5. Run the refresh hook and clear the cart

    Raises:
        EmptyCart: cart has no lines
        MissingContext: branch, cashier or currency unknown
        ValidationError: unknown payment method
        SaleCreationFailed: the header insert failed; nothing was written

    Returns:
        SaleSubmission. Failures after step 2 are reported in its outcome
        and errors; they are not rolled back.
    """
    if cart is None or cart.is_empty():
        raise EmptyCart()
    currency = _check_context(context, currency)
    method = PaymentMethod.parse(payment_method)

    lines = cart.lines()
    total = cart.total()
    receipt_number = generate_receipt_number(receipt_prefix)

    logger.info(
        f"Submitting sale {receipt_number}: branch={context.branch_id} "
        f"cashier={context.cashier_id} lines={len(lines)} total={total} {currency}"
    )

    try:
        sale = store.insert('sale', {
            'branch_id': context.branch_id,
            'cashier_id': context.cashier_id,
            'customer_id': customer_id,
            'total_amount': total,
            'currency': currency,
            'payment_method': method.value,
            'status': SaleStatus.COMPLETED.value,
            'receipt_number': receipt_number,
        })
    except StoreError as e:
        logger.error(f"Sale {receipt_number} not created: {e.message}")
        raise SaleCreationFailed(f"Sale could not be created: {e.message}") from e

    sale_id = sale['id']
    errors: List[PosError] = []
    line_items: List[Dict[str, Any]] = []

    try:
        line_items = store.insert('sale_item', [
            {
                'sale_id': sale_id,
                'product_id': line.item_id,
                'quantity': line.quantity,
                'unit_price': line.unit_price,
                'total_price': line.total_price,
            }
            for line in lines
        ])
    except StoreError as e:
        logger.error(f"Sale {receipt_number} (id={sale_id}) saved without line items: {e.message}")
        errors.append(LineItemWriteFailed(sale_id, e.message))

    if line_items:
        for line in lines:
            try:
                store.call_procedure('decrease_product_stock', {
                    'product_id': line.item_id,
                    'quantity': line.quantity,
                })
            except StockDecrementFailed as e:
                logger.error(f"Sale {receipt_number}: {e.message}")
                errors.append(e)
            except (StoreError, ValidationError) as e:
                logger.error(f"Sale {receipt_number}: stock decrement for product {line.item_id} failed: {e.message}")
                errors.append(StockDecrementFailed(line.item_id, line.quantity, e.message))

    if not line_items:
        outcome = SubmissionOutcome.HEADER_ONLY
    elif errors:
        outcome = SubmissionOutcome.STOCK_PARTIAL
    else:
        outcome = SubmissionOutcome.COMMITTED

    if on_complete is not None:
        try:
            on_complete(sale)
        except Exception:
            logger.exception(f"Post-sale refresh failed for {receipt_number}")

    cart.clear()

    if outcome is SubmissionOutcome.COMMITTED:
        logger.info(f"Sale {receipt_number} (id={sale_id}) committed")
    else:
        logger.warning(f"Sale {receipt_number} (id={sale_id}) finished as {outcome.value} with {len(errors)} error(s)")

    return SaleSubmission(sale=sale, line_items=line_items, outcome=outcome, errors=errors)


# =====================================================
# SALES LEDGER
# =====================================================

def list_sales(session: Session, branch_id: int, search: str = '', status: str = 'all',
               limit: Optional[int] = None) -> List[Sale]:
    """Sales of a branch, newest first, with items and customer loaded."""
    query = (
        session.query(Sale)
        .options(joinedload(Sale.items).joinedload(SaleItem.product), joinedload(Sale.customer))
        .outerjoin(Customer, Customer.id == Sale.customer_id)
        .filter(Sale.branch_id == branch_id)
    )

    if search:
        term = f"%{search.strip().lower()[:100]}%"
        query = query.filter(or_(
            func.lower(Sale.receipt_number).like(term),
            func.lower(Customer.name).like(term),
        ))

    if status and status != 'all':
        query = query.filter(Sale.status == SaleStatus.parse(status).value)

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_sale(session: Session, sale_id: int, branch_id: int) -> Sale:
    """Get a sale of the branch or raise NotFoundError."""
    sale = (
        session.query(Sale)
        .options(joinedload(Sale.items).joinedload(SaleItem.product), joinedload(Sale.customer))
        .filter(Sale.id == sale_id, Sale.branch_id == branch_id)
        .first()
    )
    if not sale:
        raise NotFoundError(f'Sale {sale_id} not found.')
    return sale


def sales_summary(session: Session, branch_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    """Total revenue and today's revenue/count for completed sales."""
    today = today or date.today()
    start_dt = datetime.combine(today, time.min)
    end_dt = start_dt + timedelta(days=1)

    base = session.query(
        func.coalesce(func.sum(Sale.total_amount), 0),
        func.count(Sale.id),
    ).filter(
        Sale.branch_id == branch_id,
        Sale.status == SaleStatus.COMPLETED.value,
    )
    total_revenue, transaction_count = base.one()
    today_revenue, today_count = base.filter(
        Sale.created_at >= start_dt,
        Sale.created_at < end_dt,
    ).one()

    return {
        'total_revenue': Decimal(str(total_revenue)).quantize(Decimal('0.01')),
        'transaction_count': int(transaction_count or 0),
        'today_revenue': Decimal(str(today_revenue)).quantize(Decimal('0.01')),
        'today_count': int(today_count or 0),
    }
