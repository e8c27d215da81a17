"""POS cart - in-memory line accumulator for one checkout session."""

from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from app.exceptions import BusinessLogicError, InsufficientStock, OutOfStock, ValidationError

CENTS = Decimal('0.01')


def _item_attr(item: Any, key: str, default: Any = None) -> Any:
    """Read a field from a Product model or a plain dict."""
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


def _to_money(value: Any) -> Decimal:
    try:
        return Decimal(str(value)).quantize(CENTS)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid price: {value}")


def _to_quantity(value: Any) -> int:
    try:
        qty = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid quantity: {value}")
    if qty % 1 != 0:
        raise ValidationError(f"Quantity must be a whole number: {value}")
    return int(qty)


@dataclass
class CartLine:
    """One item in the cart. unit_price is the price at the time of the first add."""
    item_id: int
    name: str
    quantity: int
    unit_price: Decimal
    stock_snapshot: int
    part_number: Optional[str] = None

    @property
    def total_price(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(CENTS)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['unit_price'] = str(self.unit_price)
        data['total_price'] = str(self.total_price)
        return data


class Cart:
    """
    Ordered mapping of item id -> CartLine.

    Insertion order is display order. Quantities are always >= 1: a line
    brought down to zero is removed, never kept at zero.
    """

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: Dict[int, CartLine] = {}
        for line in lines or []:
            self._lines[line.item_id] = line

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, item_id) -> bool:
        return int(item_id) in self._lines

    def is_empty(self) -> bool:
        return not self._lines

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, item_id) -> Optional[CartLine]:
        return self._lines.get(int(item_id))

    def add_item(self, item: Any, requested_qty: Any = 1) -> CartLine:
        """
        Add `requested_qty` units of a catalog item.

        Stock is checked against the figure loaded with the item when it was
        first added to this cart; it is not re-read on later adds.

        Raises:
            OutOfStock: item has no stock
            InsufficientStock: the accumulated quantity would exceed the stock snapshot
            BusinessLogicError: requested_qty < 1
        """
        qty = _to_quantity(requested_qty)
        if qty < 1:
            raise BusinessLogicError('Quantity must be at least 1')

        item_id = int(_item_attr(item, 'id'))
        name = _item_attr(item, 'name', str(item_id))
        stock = int(_item_attr(item, 'stock_quantity', 0) or 0)

        if stock <= 0:
            raise OutOfStock(name)

        line = self._lines.get(item_id)
        if line:
            new_qty = line.quantity + qty
            if new_qty > line.stock_snapshot:
                raise InsufficientStock(name, new_qty, line.stock_snapshot)
            line.quantity = new_qty
            return line

        if qty > stock:
            raise InsufficientStock(name, qty, stock)

        line = CartLine(
            item_id=item_id,
            name=name,
            quantity=qty,
            unit_price=_to_money(_item_attr(item, 'price')),
            stock_snapshot=stock,
            part_number=_item_attr(item, 'part_number'),
        )
        self._lines[item_id] = line
        return line

    def set_quantity(self, item_id, qty: Any) -> Optional[CartLine]:
        """
        Overwrite a line's quantity; qty <= 0 removes the line.

        The new quantity is not re-validated against stock.
        """
        qty = _to_quantity(qty)
        if qty <= 0:
            self.remove_item(item_id)
            return None
        line = self._lines.get(int(item_id))
        if line:
            line.quantity = qty
        return line

    def remove_item(self, item_id) -> None:
        """Delete the line if present."""
        self._lines.pop(int(item_id), None)

    def total(self) -> Decimal:
        """Sum of quantity * unit_price over all lines."""
        return sum((line.total_price for line in self._lines.values()), Decimal('0.00'))

    def clear(self) -> None:
        self._lines.clear()

    # Session (de)serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': {str(item_id): line.to_dict() for item_id, line in self._lines.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Cart':
        lines = []
        for item_id, item in ((data or {}).get('items') or {}).items():
            lines.append(CartLine(
                item_id=int(item_id),
                name=item['name'],
                quantity=int(item['quantity']),
                unit_price=_to_money(item['unit_price']),
                stock_snapshot=int(item['stock_snapshot']),
                part_number=item.get('part_number'),
            ))
        return cls(lines)

    def to_response(self, currency: Optional[str] = None) -> Dict[str, Any]:
        """JSON view of the cart."""
        return {
            'items': [line.to_dict() for line in self._lines.values()],
            'item_count': sum(line.quantity for line in self._lines.values()),
            'total': str(self.total()),
            'currency': currency,
        }
