"""
Receipt rendering for completed sales.

Pure functions of a sale, its items, an optional customer and the shop
branding. The printed total is recomputed from the extended line prices;
the stored sale total is carried alongside for reconciliation.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, List, Optional

from jinja2 import Environment, PackageLoader, select_autoescape
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A6
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from app.utils.formatters import money, qty, datetime_fmt

CENTS = Decimal('0.01')

_jinja = Environment(
    loader=PackageLoader('app', 'templates'),
    autoescape=select_autoescape(['html']),
)


@dataclass(frozen=True)
class Branding:
    name: str
    tagline: str = ''
    address: str = ''
    phone: str = ''
    email: str = ''

    @classmethod
    def from_config(cls, config) -> 'Branding':
        return cls(
            name=config.get('BUSINESS_NAME', ''),
            tagline=config.get('BUSINESS_TAGLINE', ''),
            address=config.get('BUSINESS_ADDRESS', ''),
            phone=config.get('BUSINESS_PHONE', ''),
            email=config.get('BUSINESS_EMAIL', ''),
        )


@dataclass(frozen=True)
class ReceiptLine:
    name: str
    part_number: Optional[str]
    quantity: int
    unit_price: Decimal
    extended_price: Decimal


@dataclass
class Receipt:
    receipt_number: str
    currency: str
    payment_method: str
    status: str
    sold_at: Optional[datetime]
    generated_at: datetime
    branding: Branding
    customer_name: str
    customer_phone: Optional[str] = None
    customer_pin: Optional[str] = None
    lines: List[ReceiptLine] = field(default_factory=list)
    stored_total: Optional[Decimal] = None

    @property
    def total(self) -> Decimal:
        return sum((line.extended_price for line in self.lines), Decimal('0.00'))

    @property
    def total_matches_stored(self) -> Optional[bool]:
        if self.stored_total is None:
            return None
        return self.total == self.stored_total


def _field(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _line_name(line: Any) -> str:
    product = _field(line, 'product')
    name = _field(line, 'product_name') or _field(product, 'name')
    return name or f"Item {_field(line, 'product_id')}"


def _line_part_number(line: Any) -> Optional[str]:
    return _field(line, 'part_number') or _field(_field(line, 'product'), 'part_number')


def build_receipt(sale: Any, lines: List[Any], customer: Any = None,
                  branding: Optional[Branding] = None,
                  generated_at: Optional[datetime] = None) -> Receipt:
    """
    Assemble the receipt model.

    `sale`, `lines` and `customer` may be ORM instances or dicts. The
    generation timestamp defaults to now and is the only value not derived
    from the inputs.
    """
    receipt_lines = []
    for line in lines:
        quantity = int(_field(line, 'quantity'))
        unit_price = Decimal(str(_field(line, 'unit_price'))).quantize(CENTS)
        receipt_lines.append(ReceiptLine(
            name=_line_name(line),
            part_number=_line_part_number(line),
            quantity=quantity,
            unit_price=unit_price,
            extended_price=(unit_price * quantity).quantize(CENTS),
        ))

    stored_total = _field(sale, 'total_amount')
    return Receipt(
        receipt_number=_field(sale, 'receipt_number'),
        currency=_field(sale, 'currency') or '',
        payment_method=_field(sale, 'payment_method') or '',
        status=_field(sale, 'status') or '',
        sold_at=_field(sale, 'created_at'),
        generated_at=generated_at or datetime.now(),
        branding=branding or Branding(name=''),
        customer_name=_field(customer, 'name') or 'Walk-in Customer',
        customer_phone=_field(customer, 'phone'),
        customer_pin=_field(customer, 'kra_pin'),
        lines=receipt_lines,
        stored_total=Decimal(str(stored_total)).quantize(CENTS) if stored_total is not None else None,
    )


def render_receipt_text(receipt: Receipt, width: int = 40) -> str:
    """Plain-text receipt (downloadable .txt)."""
    rule = '-' * width
    out = []
    for header in (receipt.branding.name.upper(), receipt.branding.tagline,
                   receipt.branding.address, receipt.branding.phone):
        if header:
            out.append(header.center(width).rstrip())
    out.append(rule)
    out.append(f"Receipt No: {receipt.receipt_number}")
    out.append(f"Date: {datetime_fmt(receipt.sold_at)}")
    out.append(f"Customer: {receipt.customer_name}")
    if receipt.customer_pin:
        out.append(f"PIN: {receipt.customer_pin}")
    out.append(rule)

    for line in receipt.lines:
        label = f"{line.name} ({line.part_number})" if line.part_number else line.name
        out.append(label)
        left = f"  {qty(line.quantity)} x {money(line.unit_price, receipt.currency)}"
        right = money(line.extended_price, receipt.currency)
        out.append(_justify(left, right, width))

    out.append(rule)
    out.append(_justify('TOTAL', money(receipt.total, receipt.currency), width))
    out.append(f"Payment Method: {receipt.payment_method.upper()}")
    out.append(rule)
    out.append('Thank you for your business!'.center(width).rstrip())
    out.append(f"Generated: {datetime_fmt(receipt.generated_at)}")
    return '\n'.join(out) + '\n'


def _justify(left: str, right: str, width: int) -> str:
    gap = max(width - len(left) - len(right), 1)
    return f"{left}{' ' * gap}{right}"


def render_receipt_html(receipt: Receipt) -> str:
    """Printable HTML receipt."""
    template = _jinja.get_template('receipts/receipt.html')
    return template.render(
        receipt=receipt,
        money=money,
        qty=qty,
        datetime_fmt=datetime_fmt,
    )


def render_receipt_pdf(receipt: Receipt) -> BytesIO:
    """Small-format PDF receipt."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A6,
        rightMargin=6*mm,
        leftMargin=6*mm,
        topMargin=6*mm,
        bottomMargin=6*mm,
        title=f"Receipt {receipt.receipt_number}",
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReceiptTitle',
        parent=styles['Heading2'],
        fontSize=12,
        alignment=TA_CENTER,
        spaceAfter=2,
        fontName='Courier-Bold'
    )
    small_style = ParagraphStyle(
        'ReceiptSmall',
        parent=styles['Normal'],
        fontSize=7,
        alignment=TA_CENTER,
        fontName='Courier'
    )

    elements.append(Paragraph(receipt.branding.name.upper() or 'RECEIPT', title_style))
    for header in (receipt.branding.tagline, receipt.branding.address, receipt.branding.phone):
        if header:
            elements.append(Paragraph(header, small_style))
    elements.append(Spacer(1, 3*mm))

    info = Table([
        ['Receipt No:', receipt.receipt_number],
        ['Date:', datetime_fmt(receipt.sold_at)],
        ['Customer:', receipt.customer_name],
        ['Payment:', receipt.payment_method.upper()],
    ], colWidths=[22*mm, 70*mm])
    info.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, -1), 'Courier'),
        ('FONTNAME', (0, 0), (0, -1), 'Courier-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 7),
    ]))
    elements.append(info)
    elements.append(Spacer(1, 3*mm))

    rows = [['Item', 'Qty', 'Price', 'Amount']]
    for line in receipt.lines:
        rows.append([
            line.name[:24],
            qty(line.quantity),
            money(line.unit_price),
            money(line.extended_price),
        ])
    rows.append(['TOTAL', '', receipt.currency, money(receipt.total)])

    items = Table(rows, colWidths=[38*mm, 10*mm, 20*mm, 24*mm])
    items.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, -1), 'Courier'),
        ('FONTNAME', (0, 0), (-1, 0), 'Courier-Bold'),
        ('FONTNAME', (0, -1), (-1, -1), 'Courier-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 7),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('LINEBELOW', (0, 0), (-1, 0), 0.5, colors.black),
        ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
    ]))
    elements.append(items)
    elements.append(Spacer(1, 4*mm))
    elements.append(Paragraph('Thank you for your business!', small_style))
    elements.append(Paragraph(f"Generated: {datetime_fmt(receipt.generated_at)}", small_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
