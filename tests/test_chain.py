from collections.abc import Callable

import pytest

from stackmux.chain import chain, validate_middleware, wrap
from stackmux.errors import InvalidMiddlewareError

type Handler = Callable[[], None]


def _mw(name: str, record: list[str]) -> Callable[[Handler], Handler]:
    def middleware(next_handler: Handler) -> Handler:
        def handler() -> None:
            record.append(f"{name}:enter")
            next_handler()
            record.append(f"{name}:exit")

        return handler

    return middleware


def test_wrap_onion_order() -> None:
    record: list[str] = []
    h = wrap(
        lambda: record.append("handler"),
        [_mw("A", record), _mw("B", record), _mw("C", record)],
    )
    h()
    assert record == [
        "A:enter",
        "B:enter",
        "C:enter",
        "handler",
        "C:exit",
        "B:exit",
        "A:exit",
    ]


@pytest.mark.parametrize("n", [0, 1, 2, 5])
def test_wrap_onion_order_any_length(n: int) -> None:
    record: list[str] = []
    names = [f"m{i}" for i in range(n)]
    h = wrap(lambda: record.append("handler"), [_mw(name, record) for name in names])
    h()
    assert record == (
        [f"{name}:enter" for name in names]
        + ["handler"]
        + [f"{name}:exit" for name in reversed(names)]
    )


def test_wrap_empty_is_identity() -> None:
    handler = lambda: None  # noqa: E731
    assert wrap(handler, []) is handler


def test_chain_matches_wrap() -> None:
    chain_record: list[str] = []
    wrap_record: list[str] = []

    chained = chain(_mw("A", chain_record), _mw("B", chain_record), _mw("C", chain_record))
    chained(lambda: chain_record.append("handler"))()

    wrap(
        lambda: wrap_record.append("handler"),
        [_mw("A", wrap_record), _mw("B", wrap_record), _mw("C", wrap_record)],
    )()

    assert chain_record == wrap_record


def test_chain_empty() -> None:
    handler = lambda: None  # noqa: E731
    assert chain()(handler) is handler


def test_chain_single() -> None:
    record: list[str] = []
    chain(_mw("A", record))(lambda: record.append("handler"))()
    assert record == ["A:enter", "handler", "A:exit"]


def test_chain_nested_in_list() -> None:
    record: list[str] = []
    stack = chain(_mw("B", record), _mw("C", record))
    wrap(lambda: record.append("handler"), [_mw("A", record), stack, _mw("D", record)])()
    assert record == [
        "A:enter",
        "B:enter",
        "C:enter",
        "D:enter",
        "handler",
        "D:exit",
        "C:exit",
        "B:exit",
        "A:exit",
    ]


def test_chain_is_reusable() -> None:
    record: list[str] = []
    stack = chain(_mw("A", record))
    stack(lambda: record.append("one"))()
    stack(lambda: record.append("two"))()
    assert record == ["A:enter", "one", "A:exit", "A:enter", "two", "A:exit"]


@pytest.mark.parametrize("bad", [None, "not callable", 42])
def test_validate_middleware_rejects(bad: object) -> None:
    with pytest.raises(InvalidMiddlewareError, match="position 1"):
        validate_middleware([lambda h: h, bad])


def test_validate_middleware_accepts_empty() -> None:
    validate_middleware([])
