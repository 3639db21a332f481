from __future__ import annotations

from sqlalchemy import func
from sqlmodel import Session, select

from nexus.domain.models import WorkOrder

WORK_ORDER_PREFIX = "WO-"
WORK_ORDER_DIGITS = 6


def format_work_order_number(index: int) -> str:
    return f"{WORK_ORDER_PREFIX}{index:0{WORK_ORDER_DIGITS}d}"


def count_work_orders(session: Session, organization_id: str) -> int:
    statement = select(func.count()).select_from(WorkOrder).where(WorkOrder.organization_id == organization_id)
    return int(session.exec(statement).one())


def next_work_order_number(session: Session, organization_id: str) -> str:
    # Read-then-insert without locking: two concurrent creates in the same
    # organization can observe the same count and share a number.
    return format_work_order_number(count_work_orders(session, organization_id) + 1)
