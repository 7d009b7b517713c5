from sqlalchemy.orm import sessionmaker
from vrflottery.config import DEFAULT_CHAIN_ID, LotteryConfig
from vrflottery.db.engine import make_engine
from vrflottery.models import Account, Base
from vrflottery.workflows import create_lottery

# The first subscription a fresh LocalVRFCoordinator hands out.
LOCAL_SUBSCRIPTION_ID = 1

DEV_ACCOUNTS = [
    "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
    "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
    "0x90F79bf6EB2c4f870365E785982E1f101E93b906",
]


def main() -> None:
    """Seed the development database with a hardhat-style lottery."""
    engine = make_engine()

    # Tables have no foreign-key cycles, so drop_all can order the drops itself.
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    config = LotteryConfig.for_chain(DEFAULT_CHAIN_ID, subscription_id=LOCAL_SUBSCRIPTION_ID)

    with Session.begin() as session:
        lottery = create_lottery(session, config, name="dev-lottery")
        session.add_all([Account(address=address) for address in DEV_ACCOUNTS])
        session.flush()
        print(
            f"Created lottery {lottery.id} (fee {lottery.entrance_fee} wei, "
            f"interval {lottery.interval_seconds}s) and {len(DEV_ACCOUNTS)} accounts"
        )

    engine.dispose()


if __name__ == "__main__":
    main()
