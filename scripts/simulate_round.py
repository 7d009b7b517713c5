"""Play one complete round against the dev database with a local coordinator.

Time is simulated: the clock jumps past the lottery's interval before upkeep.
"""

from __future__ import annotations

import argparse
import logging
import time

from vrflottery.db.engine import get_sessionmaker, make_engine
from vrflottery.draw import LotteryEngine
from vrflottery.models import Account, Lottery
from vrflottery.randomness import FUND_AMOUNT, LocalVRFCoordinator


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "participants",
        nargs="*",
        help="Addresses to enter (defaults to the seeded accounts)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    log = logging.getLogger("simulate_round")

    coordinator = LocalVRFCoordinator()
    sub_id = coordinator.create_subscription()
    coordinator.fund_subscription(sub_id, FUND_AMOUNT)

    engine = make_engine()
    Session = get_sessionmaker(engine)
    try:
        with Session.begin() as session:
            lottery = Lottery.get_latest(session)
            if lottery is None:
                raise SystemExit("No lottery found. Run scripts/seed_dev.py first.")
            if lottery.subscription_id != sub_id:
                raise SystemExit(
                    f"Lottery {lottery.id} uses subscription {lottery.subscription_id}, "
                    f"local coordinator created {sub_id}"
                )

            participants = args.participants or [
                account.address for account in session.query(Account).order_by(Account.id)
            ]
            if not participants:
                raise SystemExit("No participants given and no accounts seeded.")

            now = max(int(time.time()), lottery.last_timestamp)
            clock_value = [now]
            draw = LotteryEngine(
                session, lottery, coordinator=coordinator, clock=lambda: clock_value[0]
            )

            for participant in participants:
                draw.enter(participant, lottery.entrance_fee)
            log.info("Entered %d participants, pool %d wei", len(participants), lottery.pool_balance)

            clock_value[0] = now + lottery.interval_seconds + 1
            request_id = draw.perform_upkeep()
            words = coordinator.fulfill_random_words(request_id, draw)

            winner = lottery.recent_winner
            account = Account.get_by_address(session, winner) if winner else None
            log.info("Random word: %d", words[0])
            log.info(
                "Winner: %s (balance %s wei)",
                winner,
                account.balance if account else "unknown",
            )
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
