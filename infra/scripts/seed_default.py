from __future__ import annotations

import sys
from pathlib import Path

import structlog
from sqlmodel import Session

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from nexus.config import get_settings  # noqa: E402
from nexus.domain.models import Organization, User, UserRole  # noqa: E402
from nexus.infra.db import get_engine  # noqa: E402
from nexus.infra.logging import setup_logging  # noqa: E402

logger = structlog.get_logger(__name__)

DEFAULT_ORGANIZATION_ID = "default-org"
DEFAULT_USER_ID = "default-user"


def seed(session: Session) -> tuple[Organization, User]:
    """Insert the default organization and admin user unless they exist."""
    organization = session.get(Organization, DEFAULT_ORGANIZATION_ID)
    if organization is None:
        organization = Organization(
            id=DEFAULT_ORGANIZATION_ID,
            name="Default Organization",
            description="Default organization for testing",
            email="admin@example.com",
            timezone="UTC",
        )
        session.add(organization)
        session.flush()
    user = session.get(User, DEFAULT_USER_ID)
    if user is None:
        user = User(
            id=DEFAULT_USER_ID,
            email="user@example.com",
            name="Default User",
            role=UserRole.ADMIN,
            organization_id=DEFAULT_ORGANIZATION_ID,
        )
        session.add(user)
    session.commit()
    return organization, user


def main() -> None:
    setup_logging(get_settings())
    with Session(get_engine(), expire_on_commit=False) as session:
        organization, user = seed(session)
    logger.info("seed_completed", organization_id=organization.id, user_id=user.id)


if __name__ == "__main__":
    main()
