from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Engine
from sqlmodel import Session, SQLModel, select

from nexus.domain.models import Asset, AssetStatus, Organization, User, WorkOrder
from nexus.infra import db
from nexus.services.filters import (
    asset_predicates,
    build_predicates,
    page_window,
    parse_optional_int,
    work_order_predicates,
)
from nexus.services.numbering import format_work_order_number, next_work_order_number


@pytest.fixture()
def filter_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    engine = db.build_engine(f"sqlite:///{tmp_path / 'filters_test.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def _seed_org(session: Session) -> tuple[str, str]:
    org = Organization(name="Acme")
    session.add(org)
    session.flush()
    user = User(email="alice@acme.com", organization_id=org.id)
    session.add(user)
    session.flush()
    return org.id, user.id


def _seed_assets(session: Session) -> str:
    org_id, user_id = _seed_org(session)
    owned = {"organization_id": org_id, "created_by_id": user_id}
    session.add(Asset(name="Pump-1", type="Centrifugal Pump", location="Plant A", **owned))
    session.add(
        Asset(
            name="Fan",
            type="Blower",
            location="Plant B",
            description="pump room 100%_safe",
            status=AssetStatus.INACTIVE,
            **owned,
        )
    )
    session.add(Asset(name="Crane", type="Lift", location="Yard", **owned))
    session.commit()
    return org_id


def _names(session: Session, predicates: list) -> set[str]:
    return set(session.exec(select(Asset.name).where(*predicates)).all())


def test_absent_and_blank_filters_add_nothing() -> None:
    assert asset_predicates({}) == []
    assert asset_predicates({"status": None, "type": "  ", "search": ""}) == []
    assert len(work_order_predicates({"priority": "HIGH", "search": "pump"})) == 2


def test_asset_predicates_against_rows(filter_engine: Engine) -> None:
    with Session(filter_engine) as session:
        org_id = _seed_assets(session)

        assert _names(session, asset_predicates({"organization_id": org_id})) == {"Pump-1", "Fan", "Crane"}
        assert _names(session, asset_predicates({"type": "pump"})) == {"Pump-1"}
        assert _names(session, asset_predicates({"search": "PUMP"})) == {"Pump-1", "Fan"}
        assert _names(session, asset_predicates({"search": "pump", "status": AssetStatus.ACTIVE})) == {"Pump-1"}
        assert _names(session, asset_predicates({"location": "plant"})) == {"Pump-1", "Fan"}


def test_search_escapes_like_wildcards(filter_engine: Engine) -> None:
    with Session(filter_engine) as session:
        _seed_assets(session)
        assert _names(session, asset_predicates({"search": "100%_"})) == {"Fan"}
        assert _names(session, asset_predicates({"search": "%"})) == {"Fan"}
        assert _names(session, asset_predicates({"search": "_"})) == {"Fan"}


def test_build_predicates_without_search_fields_ignores_search() -> None:
    assert build_predicates(WorkOrder, {"search": "x"}) == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        ("", None),
        ("abc", None),
        ("-1", None),
        ("1.5", None),
        (" 25 ", 25),
        ("0", 0),
        (7, 7),
        (-3, None),
    ],
)
def test_parse_optional_int(raw: str | int | None, expected: int | None) -> None:
    assert parse_optional_int(raw) == expected


def test_page_window_is_lenient() -> None:
    assert page_window("10", "20") == (10, 20)
    assert page_window("ten", None) == (None, None)


def test_work_order_numbers(filter_engine: Engine) -> None:
    assert format_work_order_number(1) == "WO-000001"
    assert format_work_order_number(1234567) == "WO-1234567"

    with Session(filter_engine) as session:
        org_id, user_id = _seed_org(session)
        assert next_work_order_number(session, org_id) == "WO-000001"
        session.add(
            WorkOrder(
                title="Inspect",
                work_order_number="WO-000001",
                organization_id=org_id,
                created_by_id=user_id,
            )
        )
        session.flush()
        assert next_work_order_number(session, org_id) == "WO-000002"
        assert next_work_order_number(session, "other-org") == "WO-000001"
