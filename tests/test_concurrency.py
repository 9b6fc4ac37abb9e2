"""
Concurrency tests for the points workflow.

Redemptions and confirmations run in a single write transaction each, so
racing callers must never oversell stock, double-award a submission or let a
balance drift away from the ledger.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed

from ecosort.exceptions import InsufficientPointsError, InvalidStateError, OutOfStockError
from ecosort.points import PointsService
from ecosort.repository import LedgerRepo, RewardRepo, UserRepo, WasteRepo

from conftest import credit


class TestRedemptionRaces:
    def test_last_unit_sold_once(self, db, sample_reward):
        users = UserRepo(db)
        reward = RewardRepo(db).create({**sample_reward, "cost": 10, "stock": 1})
        buyers = [f"buyer-{i}" for i in range(8)]
        for buyer in buyers:
            users.get_or_create(buyer)
            credit(db, buyer, 10)

        def redeem(user_id: str) -> str:
            try:
                PointsService(db).redeem_reward(user_id, reward["id"])
                return "ok"
            except OutOfStockError:
                return "out_of_stock"

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(redeem, buyer) for buyer in buyers]
            outcomes = [f.result() for f in as_completed(futures)]

        assert outcomes.count("ok") == 1
        assert outcomes.count("out_of_stock") == 7
        assert RewardRepo(db).get(reward["id"])["stock"] == 0
        assert sum(users.require(b)["total_points"] for b in buyers) == 70

    def test_balance_never_overspent(self, db, resident, sample_reward):
        reward = RewardRepo(db).create({**sample_reward, "cost": 30, "stock": 10})
        credit(db, resident["id"], 100)

        def redeem() -> str:
            try:
                PointsService(db).redeem_reward(resident["id"], reward["id"])
                return "ok"
            except InsufficientPointsError:
                return "insufficient"

        with ThreadPoolExecutor(max_workers=6) as executor:
            outcomes = [f.result() for f in as_completed([executor.submit(redeem) for _ in range(6)])]

        assert outcomes.count("ok") == 3
        balance = UserRepo(db).require(resident["id"])["total_points"]
        assert balance == 10
        assert balance == LedgerRepo(db).sum_for_user(resident["id"])
        assert RewardRepo(db).get(reward["id"])["stock"] == 7


class TestConfirmationRaces:
    def test_submission_confirmed_once(self, db, resident, admin):
        waste = WasteRepo(db)
        waste.add_type("Plastic", 10)
        submission = waste.create_submission(resident["id"], None, "Plastic", 2)

        def confirm() -> str:
            try:
                PointsService(db).confirm_submission(submission["id"], admin["id"])
                return "ok"
            except InvalidStateError:
                return "already"

        with ThreadPoolExecutor(max_workers=5) as executor:
            outcomes = [f.result() for f in as_completed([executor.submit(confirm) for _ in range(5)])]

        assert outcomes.count("ok") == 1
        assert UserRepo(db).require(resident["id"])["total_points"] == 20
        assert len(LedgerRepo(db).list_for_user(resident["id"])) == 1


class TestApiConcurrency:
    def test_parallel_reads(self, client, state, sample_reward):
        for i in range(5):
            state.rewards.create({**sample_reward, "name": f"Reward {i}"})

        def fetch() -> int:
            return client.get("/v1/rewards").status_code

        with ThreadPoolExecutor(max_workers=10) as executor:
            statuses = [f.result() for f in as_completed([executor.submit(fetch) for _ in range(20)])]

        assert statuses == [200] * 20
