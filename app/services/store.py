"""
Data store gateway.

Thin query/command interface over the relational database used by the
sale workflow: insert, update, select and call_procedure. Every call is
committed on its own; nothing here spans more than one call.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import inspect as sa_inspect, update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.models import Branch, Profile, Product, Customer, Sale, SaleItem
from app.exceptions import StoreError, StockDecrementFailed, ValidationError

logger = logging.getLogger(__name__)

TABLES = {
    model.__tablename__: model
    for model in (Branch, Profile, Product, Customer, Sale, SaleItem)
}

Record = Dict[str, Any]


def _model_for(table: str):
    try:
        return TABLES[table]
    except KeyError:
        raise StoreError(f"Unknown table: {table}")


def row_to_dict(obj) -> Record:
    """Column values of a mapped instance as a plain dict."""
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(obj).mapper.column_attrs}


def decrease_product_stock(session: Session, product_id: int, quantity: int) -> int:
    """
    Atomically decrement a product's stock.

    A single conditional UPDATE: the row only changes when the remaining
    stock covers the quantity, so concurrent sales can never push
    stock_quantity below zero.

    Returns:
        The new stock quantity

    Raises:
        StockDecrementFailed: unknown product or not enough stock
    """
    if quantity is None or int(quantity) < 1:
        raise ValidationError('Quantity to decrement must be at least 1')
    quantity = int(quantity)

    stmt = (
        sa_update(Product)
        .where(Product.id == product_id, Product.stock_quantity >= quantity)
        .values(stock_quantity=Product.stock_quantity - quantity, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        session.rollback()
        raise StockDecrementFailed(product_id, quantity, 'unknown product or insufficient stock')

    session.commit()
    remaining = session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()
    logger.debug(f"Stock for product {product_id} decremented by {quantity}, remaining {remaining}")
    return remaining


class DataStore:
    """Query/command gateway bound to one SQLAlchemy session."""

    procedures: Dict[str, Callable[..., Any]] = {
        'decrease_product_stock': decrease_product_stock,
    }

    def __init__(self, session: Session):
        self.session = session

    def insert(self, table: str, record: Union[Record, List[Record]]) -> Union[Record, List[Record]]:
        """
        Insert one record (or a list of records) and commit.

        Returns:
            The stored record(s), including generated ids and server defaults

        Raises:
            StoreError: If the insert fails (the session is rolled back)
        """
        model = _model_for(table)
        many = isinstance(record, (list, tuple))
        records = list(record) if many else [record]
        if not records:
            raise StoreError(f"Nothing to insert into {table}")

        try:
            instances = [model(**values) for values in records]
            self.session.add_all(instances)
            self.session.commit()
            stored = [row_to_dict(instance) for instance in instances]
        except (SQLAlchemyError, TypeError) as e:
            self.session.rollback()
            logger.error(f"Insert into {table} failed: {e}")
            raise StoreError(f"Insert into {table} failed: {e}") from e

        return stored if many else stored[0]

    def update(self, table: str, predicate: Record, patch: Record) -> int:
        """Update rows matching an equality predicate; returns the affected row count."""
        model = _model_for(table)
        if not predicate:
            raise StoreError('Refusing to update without a predicate')
        try:
            count = (
                self.session.query(model)
                .filter_by(**predicate)
                .update(patch, synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Update of {table} failed: {e}")
            raise StoreError(f"Update of {table} failed: {e}") from e
        return count

    def select(self, table: str, predicate: Optional[Record] = None,
               ordering: Optional[Iterable[str]] = None) -> List[Record]:
        """
        Select rows matching an equality predicate.

        Ordering is a list of column names; prefix a name with '-' for
        descending order.
        """
        model = _model_for(table)
        order_by = []
        for column_name in ordering or ():
            descending = column_name.startswith('-')
            column = getattr(model, column_name.lstrip('-'), None)
            if column is None:
                raise StoreError(f"Unknown column {column_name} for {table}")
            order_by.append(column.desc() if descending else column.asc())
        try:
            query = self.session.query(model)
            if predicate:
                query = query.filter_by(**predicate)
            if order_by:
                query = query.order_by(*order_by)
            return [row_to_dict(row) for row in query.all()]
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Select from {table} failed: {e}") from e

    def call_procedure(self, name: str, args: Optional[Record] = None) -> Any:
        """Run a registered stored procedure."""
        procedure = self.procedures.get(name)
        if procedure is None:
            raise StoreError(f"Unknown procedure: {name}")
        try:
            return procedure(self.session, **(args or {}))
        except (StoreError, ValidationError):
            raise
        except (SQLAlchemyError, TypeError, ValueError) as e:
            self.session.rollback()
            logger.error(f"Procedure {name} failed: {e}")
            raise StoreError(f"Procedure {name} failed: {e}") from e

