from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine

from core.exceptions import (
    EmptyRoundError,
    InsufficientFunds,
    StoreUnavailable,
    UnknownParticipant,
    ValidationError
)
from core.ledger import Ledger
from database import make_session_factory


def test_balance_query_provisions_exactly_once(ledger, scheduler):
    assert ledger.get_balance("A") == 1000
    ledger.place_wager("A", 300)
    assert ledger.get_balance("A") == 700
    assert ledger.get_balance("A") == 700


def test_participant_ids_are_case_sensitive(ledger, scheduler):
    ledger.get_balance("alice")
    ledger.place_wager("alice", 100)

    assert ledger.get_balance("Alice") == 1000
    assert ledger.get_balance("alice") == 900


def test_wager_debits_balance_and_accumulates(ledger, scheduler):
    ledger.get_balance("A")

    first = ledger.place_wager("A", 100)
    second = ledger.place_wager("A", "50")

    assert first.round_number == 1
    assert first.balance == 900
    assert second.balance == 850
    assert second.round_total == 150
    assert ledger.open_wagers() == (1, [("A", 150)])
    assert ledger.current_pool() == 150


@pytest.mark.parametrize("amount", [0, -10, "abc", "0"])
def test_invalid_amount_changes_nothing(ledger, scheduler, amount):
    ledger.get_balance("A")

    with pytest.raises(ValidationError):
        ledger.place_wager("A", amount)

    assert ledger.get_balance("A") == 1000
    assert ledger.current_pool() == 0


def test_insufficient_funds_changes_nothing(ledger, scheduler):
    ledger.get_balance("A")
    ledger.place_wager("A", 600)

    with pytest.raises(InsufficientFunds) as exc:
        ledger.place_wager("A", 401)

    assert exc.value.balance == 400
    assert ledger.get_balance("A") == 400
    assert ledger.current_pool() == 600


def test_amount_beyond_sql_integer_range_is_rejected_by_balance(ledger, scheduler):
    ledger.get_balance("A")

    with pytest.raises(InsufficientFunds) as exc:
        ledger.place_wager("A", "99999999999999999999")

    assert exc.value.balance == 1000
    assert ledger.get_balance("A") == 1000
    assert ledger.current_pool() == 0

    with pytest.raises(UnknownParticipant):
        ledger.place_wager("ghost", 2 ** 63)


def test_whole_balance_can_be_wagered(ledger, scheduler):
    ledger.get_balance("A")
    assert ledger.place_wager("A", 1000).balance == 0


def test_unknown_participant_cannot_wager(ledger, scheduler):
    with pytest.raises(UnknownParticipant):
        ledger.place_wager("ghost", 10)

    assert ledger.current_pool() == 0
    with pytest.raises(EmptyRoundError):
        ledger.open_wagers()


def test_open_wagers_are_ranked_by_amount(ledger, scheduler):
    for participant_id, amount in [("C", 500), ("A", 300), ("B", 300)]:
        ledger.get_balance(participant_id)
        ledger.place_wager(participant_id, amount)

    round_number, wagers = ledger.open_wagers()
    assert round_number == 1
    assert wagers == [("A", 300), ("B", 300), ("C", 500)]
    assert ledger.current_pool() == 1100


def test_concurrent_wagers_never_overdraw(ledger, scheduler):
    ledger.get_balance("A")

    def bet():
        try:
            return ledger.place_wager("A", 70).balance
        except InsufficientFunds:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: bet(), range(30)))

    accepted = [balance for balance in results if balance is not None]
    assert len(accepted) == 1000 // 70
    assert min(accepted) >= 0
    assert ledger.get_balance("A") == 1000 - 70 * len(accepted)
    assert ledger.current_pool() == 70 * len(accepted)


def test_concurrent_first_queries_provision_once(ledger, scheduler):
    with ThreadPoolExecutor(max_workers=8) as pool:
        balances = list(pool.map(lambda _: ledger.get_balance("new"), range(16)))

    assert balances == [1000] * 16


def test_store_failure_is_reported_as_unavailable(tmp_path):
    # 沒有建立資料表的資料庫
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    ledger = Ledger(make_session_factory(engine))

    with pytest.raises(StoreUnavailable):
        ledger.get_balance("A")
    with pytest.raises(StoreUnavailable):
        ledger.current_pool()
    engine.dispose()


def test_uninitialised_round_is_reported_as_unavailable(ledger):
    ledger.get_balance("A")
    with pytest.raises(StoreUnavailable):
        ledger.place_wager("A", 10)
    assert ledger.get_balance("A") == 1000
