from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from uniportal.config import get_settings
from uniportal.db import db_session, get_engine, get_session_factory, init_schema
from uniportal.gateway import Gateway
from uniportal.log import configure_logging
from uniportal.seed import seed_admin, seed_demo_catalog


def main() -> None:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    init_schema(get_engine())
    factory = get_session_factory()
    with db_session(factory) as db:
        seed_admin(db, settings)
    result = seed_demo_catalog(Gateway(factory))
    print(f"Seeded {result['universities']} universities and {result['programs']} programs.")


if __name__ == "__main__":
    main()
