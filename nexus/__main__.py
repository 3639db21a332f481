from __future__ import annotations

import uvicorn

from nexus.config import get_settings
from nexus.infra.migrate import run_upgrade_head


def main() -> None:
    settings = get_settings()
    run_upgrade_head()
    uvicorn.run("nexus.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
