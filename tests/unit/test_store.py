import pytest
from pydantic import ValidationError

from stock_analysis.alerts.store import Condition, SubscriptionCreate


def subscribe(store, **overrides):
    data = {
        "email": "ann@example.com",
        "stockSymbol": "AAPL",
        "indicator": "RSI",
        "threshold": 70,
        "condition": "Above",
    }
    data.update(overrides)
    return store.create(SubscriptionCreate.model_validate(data))


def test_create_and_find_by_id(store):
    sub = subscribe(store)
    found = store.find_by_id(sub.id)
    assert found is not None
    assert found.email == "ann@example.com"
    assert found.stock_symbol == "AAPL"
    assert found.threshold == 70.0
    assert found.condition == "Above"
    assert found.created_at is not None


def test_find_by_id_missing_returns_none(store):
    assert store.find_by_id("does-not-exist") is None


def test_duplicates_are_stored_independently(store):
    first = subscribe(store)
    second = subscribe(store)
    assert first.id != second.id
    assert len(store.find_by_contact("ann@example.com")) == 2


def test_find_by_contact_matches_email_or_phone(store):
    subscribe(store)
    subscribe(store, email=None, phoneNumber="+15550100")
    subscribe(store, email="bob@example.com")
    assert len(store.find_by_contact("ann@example.com")) == 1
    assert len(store.find_by_contact("+15550100")) == 1
    assert len(store.find_by_email("bob@example.com")) == 1
    assert len(store.find_by_phone("+15550100")) == 1


def test_find_by_contact_without_subscriptions_is_empty(store):
    subscribe(store)
    assert store.find_by_contact("nobody@example.com") == []


def test_find_by_symbol_is_case_insensitive(store):
    subscribe(store, stockSymbol="msft")
    subscribe(store, stockSymbol="AAPL")
    assert [s.stock_symbol for s in store.find_by_symbol("MSFT")] == ["MSFT"]
    assert len(store.find_by_symbol("aapl")) == 1
    assert store.find_by_symbol("TSLA") == []


def test_delete_nonexistent_id_is_noop(store):
    kept = subscribe(store)
    assert store.delete_by_id("missing") is False
    assert [s.id for s in store.all()] == [kept.id]


def test_delete_removes_only_that_row(store):
    a = subscribe(store)
    b = subscribe(store, indicator="SMA")
    assert store.delete_by_id(a.id) is True
    assert store.find_by_id(a.id) is None
    assert [s.id for s in store.all()] == [b.id]


def test_condition_is_normalised():
    req = SubscriptionCreate.model_validate(
        {"phoneNumber": "555", "stockSymbol": " aapl ", "indicator": "sma",
         "threshold": "12.5", "condition": "below"}
    )
    assert req.condition is Condition.BELOW
    assert req.stock_symbol == "AAPL"
    assert req.threshold == 12.5


_VALID = {"email": "ann@example.com", "stockSymbol": "AAPL", "indicator": "RSI",
          "threshold": 1, "condition": "Above"}


@pytest.mark.parametrize(
    "payload",
    [
        {"stockSymbol": "AAPL", "indicator": "RSI", "threshold": 1, "condition": "Above"},
        dict(_VALID, email=" ", phoneNumber=""),
        {k: v for k, v in _VALID.items() if k != "threshold"},
        dict(_VALID, threshold="high"),
        dict(_VALID, condition="Sideways"),
        dict(_VALID, indicator="Stochastic"),
        dict(_VALID, stockSymbol=""),
        dict(_VALID, email="not-an-email"),
        dict(_VALID, email="ann@"),
        dict(_VALID, email="bob@example.com\nBcc: eve@example.com"),
    ],
)
def test_invalid_requests_are_rejected(store, payload):
    with pytest.raises(ValidationError):
        SubscriptionCreate.model_validate(payload)
    assert store.all() == []
