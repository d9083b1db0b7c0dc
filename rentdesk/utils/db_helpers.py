"""
Database helpers for concurrent writers.

Row locks and skip_locked claiming are only issued on PostgreSQL. On SQLite
the helpers fall back to plain queries; SQLite serialises writers at the
file level instead.
"""

import logging
from decimal import Decimal
from typing import List, Optional, TypeVar, Type, Union
from sqlalchemy.orm import Session
from sqlalchemy import update, func

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_postgres(db: Session) -> bool:
    try:
        return db.bind.dialect.name == 'postgresql'
    except AttributeError:
        return False


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False,
    skip_locked: bool = False
) -> Optional[T]:
    """
    Load one row with SELECT ... FOR UPDATE.

    With nowait=True a row held by another transaction raises
    OperationalError at once instead of waiting; callers turn that into a
    conflict. Returns None when no row matches.

        unit = acquire_row_lock(db, Unit, Unit.id == unit_id, nowait=True)
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        if skip_locked:
            query = query.with_for_update(skip_locked=True)
        elif nowait:
            query = query.with_for_update(nowait=True)
        else:
            query = query.with_for_update()

    return query.first()


def get_pending_with_skip_locked(
    db: Session,
    model: Type[T],
    filter_condition,
    order_by=None,
    limit: int = 50
) -> List[T]:
    """Claim up to ``limit`` queue rows, skipping rows another worker holds"""
    query = db.query(model).filter(filter_condition)

    if order_by is not None:
        query = query.order_by(order_by)

    if is_postgres(db):
        query = query.with_for_update(skip_locked=True)

    return query.limit(limit).all()


class AtomicCounter:
    """
    Read-free numeric adjustments, so two bookings for the same guest never
    lose one another's spend update.

        AtomicCounter.increment(db, Guest, Guest.id == guest_id, 'total_spend', Decimal("400"))
    """

    @staticmethod
    def increment(
        db: Session,
        model: Type[T],
        filter_condition,
        column_name: str,
        increment_by: Union[int, Decimal] = 1
    ):
        """Add ``increment_by`` (may be negative) in one UPDATE and return the new value"""
        column = getattr(model, column_name)

        stmt = (
            update(model)
            .where(filter_condition)
            .values({column_name: func.coalesce(column, 0) + increment_by})
            .execution_options(synchronize_session=False)
        )

        if is_postgres(db):
            row = db.execute(stmt.returning(column)).fetchone()
            new_value = row[0] if row else 0
        else:
            db.execute(stmt)
            new_value = db.query(column).filter(filter_condition).scalar() or 0

        # Loaded instances still hold the old value
        for obj in db.query(model).filter(filter_condition).all():
            db.expire(obj, [column_name])

        logger.debug(f"{model.__tablename__}.{column_name} adjusted by {increment_by}")
        return new_value
