from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from nexus.domain.models import (
    Asset,
    Comment,
    Organization,
    User,
    UserAssetSummary,
    UserCounts,
    UserCreate,
    UserDetail,
    UserListItem,
    UserLoginRequest,
    UserRead,
    UserRole,
    UserUpdate,
    WorkOrder,
    WorkOrderSummary,
    now_utc,
)
from nexus.infra.db import get_engine
from nexus.services.errors import ConflictError, DeleteBlockedError, NotFoundError, ValidationError
from nexus.services.filters import user_predicates
from nexus.services.relations import count_by, count_where, user_read, user_reads

logger = structlog.get_logger(__name__)

LOGIN_PROFILE_FIELDS = ("name", "given_name", "family_name", "picture", "locale", "google_id")


class UserService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_user(self, session: Session, user_id: str) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _ensure_organization(self, session: Session, organization_id: str | None) -> None:
        if organization_id and session.get(Organization, organization_id) is None:
            raise ValidationError("Invalid organization ID")

    def _counts(self, session: Session, user_id: str) -> UserCounts:
        return UserCounts(
            created_assets=count_where(session, Asset, Asset.created_by_id == user_id),
            assigned_work_orders=count_where(session, WorkOrder, WorkOrder.assigned_to_id == user_id),
            created_work_orders=count_where(session, WorkOrder, WorkOrder.created_by_id == user_id),
            comments=count_where(session, Comment, Comment.author_id == user_id),
        )

    def list_users(
        self,
        *,
        organization_id: str | None = None,
        role: UserRole | None = None,
        is_active: bool | None = None,
    ) -> list[UserListItem]:
        params: dict[str, Any] = {
            "organization_id": organization_id,
            "role": role,
            "is_active": is_active,
        }
        with self._session() as session:
            statement = select(User)
            for predicate in user_predicates(params):
                statement = statement.where(predicate)
            rows = list(session.exec(statement.order_by(col(User.created_at).desc())).all())
            ids = [row.id for row in rows]
            created_assets = count_by(session, Asset.created_by_id, ids)
            assigned = count_by(session, WorkOrder.assigned_to_id, ids)
            created_work_orders = count_by(session, WorkOrder.created_by_id, ids)
            comments = count_by(session, Comment.author_id, ids)
            return [
                UserListItem(
                    **item.model_dump(),
                    counts=UserCounts(
                        created_assets=created_assets.get(item.id, 0),
                        assigned_work_orders=assigned.get(item.id, 0),
                        created_work_orders=created_work_orders.get(item.id, 0),
                        comments=comments.get(item.id, 0),
                    ),
                )
                for item in user_reads(session, rows)
            ]

    def get_user(self, user_id: str) -> UserDetail:
        with self._session() as session:
            user = self._get_user(session, user_id)
            created_assets = session.exec(select(Asset).where(Asset.created_by_id == user_id)).all()
            assigned = session.exec(select(WorkOrder).where(WorkOrder.assigned_to_id == user_id)).all()
            created = session.exec(select(WorkOrder).where(WorkOrder.created_by_id == user_id)).all()
            return UserDetail(
                **user_read(session, user).model_dump(),
                created_assets=[UserAssetSummary.model_validate(item) for item in created_assets],
                assigned_work_orders=[WorkOrderSummary.model_validate(item) for item in assigned],
                created_work_orders=[WorkOrderSummary.model_validate(item) for item in created],
                counts=self._counts(session, user_id),
            )

    def create_user(self, payload: UserCreate) -> UserRead:
        with self._session() as session:
            existing = session.exec(select(User).where(User.email == payload.email)).first()
            if existing is not None:
                raise ConflictError("User with this email already exists")
            self._ensure_organization(session, payload.organization_id)
            user = User(**payload.model_dump(), last_login_at=now_utc())
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("User with this email already exists") from exc
            session.refresh(user)
            logger.info("user_created", user_id=user.id, organization_id=user.organization_id)
            return user_read(session, user)

    def update_user(self, user_id: str, payload: UserUpdate) -> UserRead:
        with self._session() as session:
            user = self._get_user(session, user_id)
            changes = payload.model_dump(exclude_unset=True)
            self._ensure_organization(session, changes.get("organization_id"))
            for key, value in changes.items():
                if value is None and key in {"role", "is_active"}:
                    continue
                setattr(user, key, value)
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user_read(session, user)

    def login(self, payload: UserLoginRequest) -> tuple[UserRead, bool]:
        """Find the user by email or create it, refreshing ``last_login_at``.

        Supplied non-empty profile fields replace stored ones; omitted or
        empty fields keep their stored values. Returns ``(user, created)``.
        """
        with self._session() as session:
            user = session.exec(select(User).where(User.email == payload.email)).first()
            created = user is None
            if user is None:
                user = User(**payload.model_dump())
            else:
                for key in LOGIN_PROFILE_FIELDS:
                    value = getattr(payload, key)
                    if value:
                        setattr(user, key, value)
                user.updated_at = now_utc()
            user.last_login_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            logger.info("user_login", user_id=user.id, created=created)
            return user_read(session, user), created

    def delete_user(self, user_id: str, *, permanent: bool = False) -> bool:
        """Deactivate the user, or remove it when ``permanent`` is set.

        Returns ``True`` when the row was removed.
        """
        with self._session() as session:
            user = self._get_user(session, user_id)
            if not permanent:
                user.is_active = False
                user.updated_at = now_utc()
                session.add(user)
                session.commit()
                logger.info("user_deactivated", user_id=user_id)
                return False

            work_orders = count_where(
                session,
                WorkOrder,
                or_(WorkOrder.assigned_to_id == user_id, WorkOrder.created_by_id == user_id),
            )
            if work_orders > 0:
                raise DeleteBlockedError(
                    "Cannot permanently delete user with associated work orders",
                    {"workOrders": work_orders},
                )
            session.delete(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DeleteBlockedError(
                    "Cannot permanently delete user with associated records",
                    {"workOrders": 0},
                ) from exc
            logger.info("user_deleted", user_id=user_id)
            return True
