from __future__ import annotations

import argparse
import logging

from vrflottery.db.engine import get_sessionmaker, make_engine
from vrflottery.models import Lottery
from vrflottery.workflows import enter_lottery


def main() -> int:
    parser = argparse.ArgumentParser(description="Enter the newest lottery.")
    parser.add_argument("participant", help="Address entering the lottery")
    parser.add_argument(
        "--extra",
        type=int,
        default=1,
        help="Wei paid on top of the entrance fee (kept by the pool)",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    engine = make_engine()
    Session = get_sessionmaker(engine)
    try:
        with Session.begin() as session:
            lottery = Lottery.get_latest(session)
            if lottery is None:
                raise SystemExit("No lottery found. Run scripts/seed_dev.py first.")
            entry = enter_lottery(
                session, lottery, args.participant, lottery.entrance_fee + args.extra
            )
            print(f"Entered! position {entry.position}, pool {lottery.pool_balance} wei")
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
