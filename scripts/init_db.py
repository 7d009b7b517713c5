from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, inspect, select

from vrflottery.db.engine import get_sessionmaker, make_engine
from vrflottery.models import Lottery

logger = logging.getLogger("init_db")


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def report_schema() -> None:
    """Log the tables of the configured database and how many lotteries exist."""
    engine = make_engine()
    try:
        tables = sorted(inspect(engine).get_table_names())
        logger.info("Current tables: %s", ", ".join(tables))
        if Lottery.__tablename__ not in tables:
            return
        Session = get_sessionmaker(engine)
        with Session() as session:
            count = session.scalar(select(func.count(Lottery.id))) or 0
            latest = Lottery.get_latest(session)
            logger.info("Lotteries: %d", count)
            if latest is not None:
                logger.info(
                    "Latest lottery %s is %s in round %d",
                    latest.id,
                    latest.state,
                    latest.round_number,
                )
    finally:
        engine.dispose()


def main() -> None:
    """Apply migrations (default to head) and report the resulting schema."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    upgrade_db()
    report_schema()


if __name__ == "__main__":
    main()
