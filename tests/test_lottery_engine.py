from __future__ import annotations

import os
import tempfile
import unittest

from vrflottery.config import LotteryConfig
from vrflottery.db.engine import get_sessionmaker, make_engine
from vrflottery.draw import LotteryEngine
from vrflottery.errors import (
    InsufficientPayment,
    PayoutFailed,
    RaffleNotOpen,
    RequestNotStale,
    UnknownRequest,
    UpkeepNotNeeded,
)
from vrflottery.models import Account, Base, Lottery, LotteryState, RandomnessRequest
from vrflottery.payouts import PayoutGateway
from vrflottery.randomness import FUND_AMOUNT, LocalVRFCoordinator
from vrflottery.randomness.coordinator import VRFCoordinator
from vrflottery.workflows import create_lottery

FEE = 10**16
INTERVAL = 30
START = 1_700_000_000

ALICE = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BOB = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
CAROL = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
DAVE = "0x15d34AAf54267DB7D7c367839AAf71A00a2C6A65"


class FakeClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FailingCoordinator(VRFCoordinator):
    def request_random_words(self, *args, **kwargs) -> int:
        raise RuntimeError("coordinator unavailable")


class ZeroIdCoordinator(VRFCoordinator):
    def request_random_words(self, *args, **kwargs) -> int:
        return 0


class ExplodingGateway(PayoutGateway):
    def transfer(self, session, recipient, amount) -> None:
        raise OSError("wallet node unreachable")


class LotteryEngineTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        self.session = self.Session()

        self.clock = FakeClock(START)
        self.coordinator = LocalVRFCoordinator()
        self.sub_id = self.coordinator.create_subscription()
        self.coordinator.fund_subscription(self.sub_id, FUND_AMOUNT)

        config = LotteryConfig(
            entrance_fee=FEE,
            interval=INTERVAL,
            gas_lane="0xd89b2bf150e3b9e13446986e571fb9cab24b13cea0a43ea20a6049a85cc807cc",
            subscription_id=self.sub_id,
            callback_gas_limit=500_000,
        )
        self.lottery = create_lottery(self.session, config, clock=self.clock)
        self.draw = LotteryEngine(
            self.session, self.lottery, coordinator=self.coordinator, clock=self.clock
        )

    def tearDown(self) -> None:
        self.session.close()
        self.engine.dispose()

    # --- helpers ---
    def _enter_all(self, *participants: str) -> None:
        for participant in participants:
            self.draw.enter(participant, FEE)

    def _start_draw(self, *participants: str) -> int:
        self._enter_all(*participants)
        self.clock.advance(INTERVAL + 1)
        return self.draw.perform_upkeep()

    def _event_names(self) -> list[str]:
        return [event.name for event in self.lottery.events_since(self.session)]


class ConstructionTests(LotteryEngineTestCase):
    def test_initializes_open_with_empty_round(self) -> None:
        self.assertEqual(self.lottery.lottery_state, LotteryState.OPEN)
        self.assertEqual(self.lottery.interval_seconds, INTERVAL)
        self.assertEqual(self.lottery.entrance_fee, FEE)
        self.assertEqual(self.lottery.pool_balance, 0)
        self.assertEqual(self.lottery.number_of_players(self.session), 0)
        self.assertEqual(self.lottery.last_timestamp, START)
        self.assertIsNone(self.lottery.recent_winner)
        self.assertIsNone(self.lottery.outstanding_request_id)

    def test_unsaved_lottery_is_rejected(self) -> None:
        config = LotteryConfig(
            entrance_fee=FEE,
            interval=INTERVAL,
            gas_lane="0xlane",
            subscription_id=self.sub_id,
            callback_gas_limit=500_000,
        )
        unsaved = Lottery.from_config(config, created_at_ts=START)
        with self.assertRaises(ValueError):
            LotteryEngine(self.session, unsaved)


class EnterTests(LotteryEngineTestCase):
    def test_reverts_when_not_paying_enough(self) -> None:
        with self.assertRaises(InsufficientPayment) as ctx:
            self.draw.enter(ALICE, FEE - 1)
        self.assertEqual(ctx.exception.paid, FEE - 1)
        self.assertEqual(ctx.exception.required, FEE)
        self.assertEqual(self.lottery.number_of_players(self.session), 0)
        self.assertEqual(self.lottery.pool_balance, 0)
        self.assertEqual(self._event_names(), [])

    def test_reverts_on_zero_payment(self) -> None:
        with self.assertRaises(InsufficientPayment):
            self.draw.enter(ALICE, 0)

    def test_records_players_when_they_enter(self) -> None:
        entry = self.draw.enter(ALICE, FEE)
        self.assertEqual(entry.position, 0)
        self.assertEqual(self.lottery.get_player(self.session, 0), ALICE)
        self.assertEqual(self.lottery.number_of_players(self.session), 1)
        self.assertEqual(self.lottery.pool_balance, FEE)

    def test_overpayment_stays_in_pool(self) -> None:
        self.draw.enter(ALICE, FEE + 1)
        self.assertEqual(self.lottery.pool_balance, FEE + 1)

    def test_same_address_may_enter_twice(self) -> None:
        self._enter_all(ALICE, ALICE, BOB)
        self.assertEqual(self.lottery.number_of_players(self.session), 3)
        self.assertEqual(self.lottery.get_player(self.session, 1), ALICE)
        self.assertEqual(self.lottery.get_player(self.session, 2), BOB)
        self.assertEqual(self.lottery.pool_balance, 3 * FEE)

    def test_emits_event_on_enter(self) -> None:
        self.draw.enter(ALICE, FEE)
        events = self.lottery.events_since(self.session)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].name, "Entered")
        self.assertEqual(events[0].payload, {"participant": ALICE})

    def test_rejects_entrance_while_calculating(self) -> None:
        self._start_draw(ALICE)
        with self.assertRaises(RaffleNotOpen):
            self.draw.enter(BOB, FEE)
        self.assertEqual(self.lottery.number_of_players(self.session), 1)
        self.assertEqual(self.lottery.pool_balance, FEE)

    def test_fee_is_checked_before_state(self) -> None:
        self._start_draw(ALICE)
        with self.assertRaises(InsufficientPayment):
            self.draw.enter(BOB, 1)

    def test_get_player_out_of_range(self) -> None:
        self.draw.enter(ALICE, FEE)
        with self.assertRaises(IndexError):
            self.lottery.get_player(self.session, 1)
        with self.assertRaises(IndexError):
            self.lottery.get_player(self.session, -1)

    def test_rejects_blank_participant(self) -> None:
        with self.assertRaises(ValueError):
            self.draw.enter("   ", FEE)


class CheckUpkeepTests(LotteryEngineTestCase):
    def test_false_without_players(self) -> None:
        self.clock.advance(INTERVAL + 1)
        self.assertFalse(self.draw.check_upkeep())

    def test_false_when_not_open(self) -> None:
        self._start_draw(ALICE)
        self.assertEqual(self.lottery.lottery_state, LotteryState.CALCULATING)
        self.assertFalse(self.draw.check_upkeep())

    def test_false_before_interval_passed(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(INTERVAL - 1)
        self.assertFalse(self.draw.check_upkeep())

    def test_true_when_time_players_balance_and_open(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(INTERVAL + 1)
        self.assertTrue(self.draw.check_upkeep())

    def test_true_exactly_at_interval(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(INTERVAL)
        self.assertTrue(self.draw.check_upkeep())

    def test_repeated_checks_do_not_change_state(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(INTERVAL + 1)
        before = self.lottery.to_json()
        for _ in range(5):
            self.assertTrue(self.draw.check_upkeep())
        self.assertEqual(self.lottery.to_json(), before)
        self.assertEqual(self._event_names(), ["Entered"])

    def test_status_reports_each_condition(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(5)
        status = self.draw.upkeep_status()
        self.assertTrue(status.is_open)
        self.assertTrue(status.has_players)
        self.assertTrue(status.has_balance)
        self.assertFalse(status.time_passed)
        self.assertEqual(status.elapsed, 5)
        self.assertFalse(status.needed)


class PerformUpkeepTests(LotteryEngineTestCase):
    def test_reverts_if_check_upkeep_is_false(self) -> None:
        with self.assertRaises(UpkeepNotNeeded) as ctx:
            self.draw.perform_upkeep()
        self.assertEqual(ctx.exception.pool_balance, 0)
        self.assertEqual(ctx.exception.player_count, 0)
        self.assertEqual(ctx.exception.state, "open")
        self.assertIn("Lottery__UpkeepNotNeeded(0, 0, open)", str(ctx.exception))
        self.assertEqual(self.lottery.lottery_state, LotteryState.OPEN)

    def test_updates_state_and_requests_randomness(self) -> None:
        request_id = self._start_draw(ALICE)

        self.assertGreater(request_id, 0)
        self.assertEqual(self.lottery.lottery_state, LotteryState.CALCULATING)
        self.assertEqual(self.lottery.outstanding_request_id, request_id)
        self.assertTrue(self.coordinator.is_pending(request_id))

        requests = self.lottery.requests
        self.assertEqual(len(requests), 1)
        self.assertEqual(requests[0].request_id, request_id)
        self.assertEqual(requests[0].status, "pending")
        self.assertEqual(requests[0].subscription_id, self.sub_id)
        self.assertEqual(requests[0].callback_gas_limit, 500_000)

        events = self.lottery.events_since(self.session, name="DrawStarted")
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].payload, {"request_id": str(request_id)})

    def test_second_upkeep_while_calculating_fails_closed(self) -> None:
        request_id = self._start_draw(ALICE)
        with self.assertRaises(UpkeepNotNeeded) as ctx:
            self.draw.perform_upkeep()
        self.assertEqual(ctx.exception.state, "calculating")
        self.assertEqual(self.lottery.outstanding_request_id, request_id)
        self.assertFalse(self.coordinator.is_pending(request_id + 1))

    def test_requires_coordinator(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(INTERVAL + 1)
        engine = LotteryEngine(self.session, self.lottery, clock=self.clock)
        with self.assertRaises(RuntimeError):
            engine.perform_upkeep()

    def test_coordinator_failure_leaves_lottery_open(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(INTERVAL + 1)
        engine = LotteryEngine(
            self.session, self.lottery, coordinator=FailingCoordinator(), clock=self.clock
        )
        with self.assertRaises(RuntimeError):
            engine.perform_upkeep()
        self.assertEqual(self.lottery.lottery_state, LotteryState.OPEN)
        self.assertIsNone(self.lottery.outstanding_request_id)
        self.assertEqual(self.lottery.requests, [])
        self.assertEqual(self._event_names(), ["Entered"])

    def test_zero_request_id_is_refused(self) -> None:
        self.draw.enter(ALICE, FEE)
        self.clock.advance(INTERVAL + 1)
        engine = LotteryEngine(
            self.session, self.lottery, coordinator=ZeroIdCoordinator(), clock=self.clock
        )
        with self.assertRaises(RuntimeError):
            engine.perform_upkeep()
        self.assertEqual(self.lottery.lottery_state, LotteryState.OPEN)


class FulfillRandomWordsTests(LotteryEngineTestCase):
    def _assert_rejects_bogus_ids(self, *participants: str) -> None:
        request_id = self._start_draw(*participants)
        for bogus in (0, request_id + 1):
            with self.assertRaises(UnknownRequest) as ctx:
                self.draw.fulfill_random_words(bogus, [7])
            self.assertEqual(ctx.exception.outstanding, request_id)
        self.assertEqual(self.lottery.lottery_state, LotteryState.CALCULATING)
        self.assertEqual(self.lottery.number_of_players(self.session), len(participants))
        self.assertEqual(self.lottery.pool_balance, FEE * len(participants))
        self.assertEqual(self.lottery.outstanding_request_id, request_id)
        self.assertIsNone(self.lottery.recent_winner)

    def test_rejects_unknown_ids_with_one_player(self) -> None:
        self._assert_rejects_bogus_ids(ALICE)

    def test_rejects_unknown_ids_with_several_players(self) -> None:
        self._assert_rejects_bogus_ids(ALICE, BOB, CAROL)

    def test_rejects_callback_before_any_draw(self) -> None:
        self.draw.enter(ALICE, FEE)
        with self.assertRaises(UnknownRequest):
            self.draw.fulfill_random_words(1, [7])
        self.assertEqual(self.lottery.number_of_players(self.session), 1)

    def test_requires_a_random_word(self) -> None:
        request_id = self._start_draw(ALICE)
        with self.assertRaises(ValueError):
            self.draw.fulfill_random_words(request_id, [])
        self.assertEqual(self.lottery.lottery_state, LotteryState.CALCULATING)

    def test_picks_a_winner_resets_and_sends_money(self) -> None:
        request_id = self._start_draw(ALICE, BOB, CAROL, DAVE)
        self.clock.advance(12)

        winner = self.draw.fulfill_random_words(request_id, [6, 99])

        self.assertEqual(winner, CAROL)  # 6 % 4 == 2
        self.assertEqual(self.lottery.recent_winner, CAROL)
        self.assertEqual(self.lottery.lottery_state, LotteryState.OPEN)
        self.assertEqual(self.lottery.number_of_players(self.session), 0)
        self.assertEqual(self.lottery.pool_balance, 0)
        self.assertIsNone(self.lottery.outstanding_request_id)
        self.assertEqual(self.lottery.last_timestamp, START + INTERVAL + 1 + 12)
        self.assertEqual(self.lottery.round_number, 2)
        with self.assertRaises(IndexError):
            self.lottery.get_player(self.session, 0)

        account = Account.get_by_address(self.session, CAROL)
        self.assertIsNotNone(account)
        self.assertEqual(account.balance, 4 * FEE)

        request = RandomnessRequest.get_for_lottery(self.session, self.lottery.id, request_id)
        self.assertEqual(request.status, "fulfilled")
        self.assertEqual(request.words, [6, 99])
        self.assertEqual(request.winner, CAROL)

    def test_word_and_word_plus_count_pick_same_winner_across_rounds(self) -> None:
        players = (ALICE, BOB, CAROL, DAVE)
        word = 2**255 + 5

        first_id = self._start_draw(*players)
        first_winner = self.draw.fulfill_random_words(first_id, [word])

        second_id = self._start_draw(*players)
        second_winner = self.draw.fulfill_random_words(second_id, [word + len(players)])

        self.assertEqual(first_winner, players[word % len(players)])
        self.assertEqual(second_winner, first_winner)
        self.assertEqual(self.lottery.recent_winner, first_winner)
        self.assertEqual(self.lottery.round_number, 3)
        picked = self.lottery.events_since(self.session, name="WinnerPicked")
        self.assertEqual([event.payload["winner"] for event in picked], [first_winner] * 2)

    def test_winner_added_to_existing_balance(self) -> None:
        self.session.add(Account(address=ALICE, balance=5))
        self.session.flush()
        request_id = self._start_draw(ALICE)
        self.draw.fulfill_random_words(request_id, [123456789])
        self.assertEqual(Account.get_by_address(self.session, ALICE).balance, 5 + FEE)

    def test_emits_events_in_round_order(self) -> None:
        request_id = self._start_draw(ALICE, BOB)
        self.draw.fulfill_random_words(request_id, [1])
        self.assertEqual(
            self._event_names(), ["Entered", "Entered", "DrawStarted", "WinnerPicked"]
        )
        picked = self.lottery.events_since(self.session, name="WinnerPicked")[0]
        self.assertEqual(picked.payload, {"winner": BOB, "amount": str(2 * FEE)})
        self.assertEqual(picked.round_number, 1)

    def test_same_request_cannot_be_resolved_twice(self) -> None:
        request_id = self._start_draw(ALICE)
        self.draw.fulfill_random_words(request_id, [3])
        with self.assertRaises(UnknownRequest):
            self.draw.fulfill_random_words(request_id, [3])
        self.assertEqual(Account.get_by_address(self.session, ALICE).balance, FEE)

    def test_refused_payout_rolls_back_everything(self) -> None:
        self.session.add(Account(address=ALICE, accepts_payments=False))
        self.session.flush()
        request_id = self._start_draw(ALICE, BOB)

        with self.assertRaises(PayoutFailed) as ctx:
            self.draw.fulfill_random_words(request_id, [0])
        self.assertEqual(ctx.exception.recipient, ALICE)
        self.assertEqual(ctx.exception.amount, 2 * FEE)

        self.assertEqual(self.lottery.lottery_state, LotteryState.CALCULATING)
        self.assertEqual(self.lottery.outstanding_request_id, request_id)
        self.assertEqual(self.lottery.pool_balance, 2 * FEE)
        self.assertEqual(self.lottery.round_number, 1)
        self.assertEqual(self.lottery.number_of_players(self.session), 2)
        self.assertIsNone(self.lottery.recent_winner)
        self.assertEqual(self.lottery.last_timestamp, START)
        self.assertEqual(Account.get_by_address(self.session, ALICE).balance, 0)
        self.assertNotIn("WinnerPicked", self._event_names())
        request = RandomnessRequest.get_for_lottery(self.session, self.lottery.id, request_id)
        self.assertEqual(request.status, "pending")

        # Once the winner can receive funds, the same callback succeeds.
        Account.get_by_address(self.session, ALICE).accepts_payments = True
        self.session.flush()
        self.assertEqual(self.draw.fulfill_random_words(request_id, [0]), ALICE)
        self.assertEqual(Account.get_by_address(self.session, ALICE).balance, 2 * FEE)

    def test_gateway_errors_surface_as_payout_failed(self) -> None:
        request_id = self._start_draw(ALICE)
        engine = LotteryEngine(
            self.session, self.lottery, payouts=ExplodingGateway(), clock=self.clock
        )
        with self.assertRaises(PayoutFailed) as ctx:
            engine.fulfill_random_words(request_id, [5])
        self.assertIn("wallet node unreachable", ctx.exception.reason)
        self.assertEqual(self.lottery.lottery_state, LotteryState.CALCULATING)
        self.assertEqual(self.lottery.number_of_players(self.session), 1)


class ReissueRequestTests(LotteryEngineTestCase):
    def test_requires_outstanding_request(self) -> None:
        with self.assertRaises(RequestNotStale):
            self.draw.reissue_randomness_request(min_age_seconds=0)

    def test_refuses_young_request(self) -> None:
        request_id = self._start_draw(ALICE)
        self.clock.advance(59)
        with self.assertRaises(RequestNotStale):
            self.draw.reissue_randomness_request(min_age_seconds=60)
        self.assertEqual(self.lottery.outstanding_request_id, request_id)

    def test_refuses_request_without_record(self) -> None:
        request_id = self._start_draw(ALICE)
        record = RandomnessRequest.get_for_lottery(self.session, self.lottery.id, request_id)
        self.session.delete(record)
        self.session.flush()
        self.clock.advance(3600)

        with self.assertRaises(RequestNotStale):
            self.draw.reissue_randomness_request(min_age_seconds=60)
        self.assertEqual(self.lottery.outstanding_request_id, request_id)
        self.assertFalse(self.coordinator.is_pending(request_id + 1))
        self.assertEqual(len(self.lottery.events_since(self.session, name="DrawStarted")), 1)

    def test_supersedes_stale_request(self) -> None:
        old_id = self._start_draw(ALICE, BOB)
        self.clock.advance(600)

        new_id = self.draw.reissue_randomness_request(min_age_seconds=300)

        self.assertNotEqual(new_id, old_id)
        self.assertEqual(self.lottery.outstanding_request_id, new_id)
        self.assertEqual(self.lottery.lottery_state, LotteryState.CALCULATING)
        old = RandomnessRequest.get_for_lottery(self.session, self.lottery.id, old_id)
        self.assertEqual(old.status, "superseded")

        with self.assertRaises(UnknownRequest):
            self.draw.fulfill_random_words(old_id, [1])
        self.assertEqual(self.draw.fulfill_random_words(new_id, [1]), BOB)

        started = self.lottery.events_since(self.session, name="DrawStarted")
        self.assertEqual(len(started), 2)
        self.assertEqual(started[1].payload["supersedes"], str(old_id))


if __name__ == "__main__":
    unittest.main()


class CrossSessionUpkeepTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        url = f"sqlite:///{os.path.join(self._tmpdir.name, 'lottery.db')}"
        self.engine = make_engine(url)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        self.clock = FakeClock(START)
        self.coordinator = LocalVRFCoordinator()
        self.sub_id = self.coordinator.create_subscription()
        self.coordinator.fund_subscription(self.sub_id, FUND_AMOUNT)

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmpdir.cleanup()

    def test_check_upkeep_sees_draw_started_elsewhere(self) -> None:
        config = LotteryConfig(
            entrance_fee=FEE,
            interval=INTERVAL,
            gas_lane="0xlane",
            subscription_id=self.sub_id,
            callback_gas_limit=500_000,
        )
        with self.Session() as watcher:
            lottery = create_lottery(watcher, config, clock=self.clock)
            draw = LotteryEngine(watcher, lottery, clock=self.clock)
            draw.enter(ALICE, FEE)
            watcher.commit()

            self.clock.advance(INTERVAL + 1)
            self.assertTrue(draw.check_upkeep())
            watcher.commit()

            with self.Session.begin() as keeper:
                other = keeper.get(Lottery, lottery.id)
                LotteryEngine(
                    keeper, other, coordinator=self.coordinator, clock=self.clock
                ).perform_upkeep()

            self.assertFalse(draw.check_upkeep())
            self.assertFalse(draw.upkeep_status().is_open)
            self.assertEqual(lottery.lottery_state, LotteryState.CALCULATING)
