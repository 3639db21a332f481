from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import col

from nexus.domain.models import Asset, User, WorkOrder

ASSET_EXACT_FIELDS = ("organization_id", "status", "criticality", "created_by_id")
ASSET_CONTAINS_FIELDS = ("type", "location")
ASSET_SEARCH_FIELDS = ("name", "description", "model", "serial_number")

WORK_ORDER_EXACT_FIELDS = (
    "organization_id",
    "status",
    "priority",
    "assigned_to_id",
    "created_by_id",
    "asset_id",
)
WORK_ORDER_CONTAINS_FIELDS = ("type",)
WORK_ORDER_SEARCH_FIELDS = ("title", "description", "work_order_number")

USER_EXACT_FIELDS = ("organization_id", "role", "is_active")

ItemT = TypeVar("ItemT")


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def contains_ci(column: Any, value: str) -> ColumnElement[bool]:
    return col(column).icontains(value, autoescape=True)


def build_predicates(
    model: type[Any],
    params: Mapping[str, Any],
    *,
    exact: Sequence[str] = (),
    contains: Sequence[str] = (),
    search_fields: Sequence[str] = (),
) -> list[ColumnElement[bool]]:
    """Translate optional filter values into a list of AND-ed predicates.

    ``exact`` keys become equality predicates, ``contains`` keys become
    case-insensitive substring predicates and a non-empty ``search`` value
    becomes a single OR across ``search_fields``. Absent keys add nothing.
    """
    predicates: list[ColumnElement[bool]] = []
    for key in exact:
        value = params.get(key)
        if _present(value):
            predicates.append(col(getattr(model, key)) == value)
    for key in contains:
        value = params.get(key)
        if _present(value):
            predicates.append(contains_ci(getattr(model, key), str(value).strip()))
    search = params.get("search")
    if search_fields and _present(search):
        term = str(search).strip()
        predicates.append(or_(*(contains_ci(getattr(model, field), term) for field in search_fields)))
    return predicates


def asset_predicates(params: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    return build_predicates(
        Asset,
        params,
        exact=ASSET_EXACT_FIELDS,
        contains=ASSET_CONTAINS_FIELDS,
        search_fields=ASSET_SEARCH_FIELDS,
    )


def work_order_predicates(params: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    return build_predicates(
        WorkOrder,
        params,
        exact=WORK_ORDER_EXACT_FIELDS,
        contains=WORK_ORDER_CONTAINS_FIELDS,
        search_fields=WORK_ORDER_SEARCH_FIELDS,
    )


def user_predicates(params: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    return build_predicates(User, params, exact=USER_EXACT_FIELDS)


def parse_optional_int(value: str | int | None) -> int | None:
    """Return ``value`` as a non-negative int, or ``None`` when it is not one."""
    if value is None:
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    raw = value.strip()
    if not raw.isdigit():
        return None
    return int(raw)


@dataclass(frozen=True)
class Page(Generic[ItemT]):
    items: list[ItemT]
    total: int
    offset: int
    limit: int


def page_window(limit: str | int | None, offset: str | int | None) -> tuple[int | None, int | None]:
    return parse_optional_int(limit), parse_optional_int(offset)
