from app.history_store import HistoryStore, turn_number


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


EXCHANGE = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]


def test_unknown_call_starts_empty():
    store = HistoryStore(ttl_seconds=0)
    assert store.get("CA_NEW") == []
    assert store.get("") == []


def test_set_get_delete():
    store = HistoryStore(ttl_seconds=0)

    assert store.set("CA1", EXCHANGE) is True
    assert store.get("CA1") == EXCHANGE
    assert "CA1" in store

    assert store.delete("CA1") is True
    assert store.delete("CA1") is False
    assert store.get("CA1") == []


def test_get_returns_a_copy():
    store = HistoryStore(ttl_seconds=0)
    store.set("CA1", EXCHANGE)

    history = store.get("CA1")
    history.append({"role": "user", "content": "mutated"})

    assert len(store.get("CA1")) == 2


def test_set_stamps_last_updated():
    clock = FakeClock(1234.0)
    store = HistoryStore(ttl_seconds=60, clock=clock)

    store.set("CA1", EXCHANGE)

    assert store.last_updated("CA1") == 1234.0
    assert store.last_updated("CA_OTHER") is None


def test_expired_entries_are_evicted():
    clock = FakeClock()
    store = HistoryStore(ttl_seconds=60, clock=clock)
    store.set("CA_OLD", EXCHANGE)

    clock.now += 30
    store.set("CA_NEW", EXCHANGE)
    assert store.get("CA_OLD") == EXCHANGE

    clock.now += 31
    assert store.get("CA_OLD") == []
    assert store.get("CA_NEW") == EXCHANGE

    clock.now += 60
    assert store.evict_expired() == 1
    assert len(store) == 0


def test_zero_ttl_disables_eviction():
    clock = FakeClock()
    store = HistoryStore(ttl_seconds=0, clock=clock)
    store.set("CA1", EXCHANGE)

    clock.now += 10 ** 6

    assert store.evict_expired() == 0
    assert store.get("CA1") == EXCHANGE


def test_ttl_defaults_to_config(monkeypatch):
    from app.config import Config

    monkeypatch.setattr(Config, "HISTORY_TTL_SECONDS", 5)
    assert HistoryStore().ttl_seconds == 5


def test_turn_number_counts_completed_exchanges():
    assert turn_number([]) == 1
    assert turn_number(EXCHANGE) == 2
    assert turn_number(EXCHANGE * 9) == 10
