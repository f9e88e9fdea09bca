from services.strategy_chain import Strategy, run_chain


def test_stops_at_first_non_none_value():
    calls = []

    def step(name, value):
        def run():
            calls.append(name)
            return value
        return Strategy(name, run)

    outcome = run_chain([step("a", None), step("b", 0), step("c", "late")])

    assert outcome.succeeded
    assert outcome.value == 0
    assert outcome.strategy == "b"
    assert outcome.attempts == ["a", "b"]
    assert calls == ["a", "b"]


def test_exhausted_chain_records_every_attempt():
    outcome = run_chain([Strategy("a", lambda: None), Strategy("b", lambda: None)])
    assert not outcome.succeeded
    assert outcome.strategy is None
    assert outcome.attempts == ["a", "b"]


def test_empty_chain():
    outcome = run_chain([])
    assert outcome.value is None
    assert outcome.attempts == []
