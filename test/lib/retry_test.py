from datetime import timedelta
from typing import Any, List, Optional, Tuple

import pytest

from tflib.errors import NotFoundError, UnexpectedStateError, WaitTimeoutError
from tflib.retry import StateChangeConf, retry_when


def refresh_from(states: List[Optional[str]]) -> Any:
    remaining = list(states)

    def refresh() -> Tuple[Optional[Any], str]:
        state = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        return (None, "") if state is None else ({"Status": state}, state)

    return refresh


def conf(pending: List[str], target: List[str], states: List[Optional[str]], **kwargs: Any) -> StateChangeConf:
    return StateChangeConf(
        pending=pending,
        target=target,
        refresh=refresh_from(states),
        timeout=kwargs.pop("timeout", timedelta(seconds=5)),
        poll_interval=timedelta(0),
        **kwargs,
    )


def test_pending_to_target() -> None:
    result = conf(["Initializing", "Updating"], ["Active"], ["Initializing", "Updating", "Active"]).wait_for_state()
    assert result == {"Status": "Active"}


def test_unexpected_state() -> None:
    with pytest.raises(UnexpectedStateError) as ex:
        conf(["Initializing"], ["Active"], ["Initializing", "Failed"]).wait_for_state()
    assert ex.value.state == "Failed"
    assert ex.value.result == {"Status": "Failed"}
    assert str(ex.value) == "unexpected state 'Failed', wanted target 'Active'"


def test_not_found() -> None:
    # no target: the object is gone, which is the goal
    assert conf(["Deleting"], [], ["Deleting", "Deleting", None]).wait_for_state() is None
    # with target: give up after the configured number of checks
    with pytest.raises(NotFoundError):
        conf(["Initializing"], ["Active"], [None], not_found_checks=2).wait_for_state()
    # a single missing answer is tolerated
    assert conf(["Initializing"], ["Active"], [None, "Active"]).wait_for_state() == {"Status": "Active"}


def test_timeout() -> None:
    with pytest.raises(WaitTimeoutError) as ex:
        conf(["Updating"], ["Active"], ["Updating"], timeout=timedelta(milliseconds=50)).wait_for_state()
    assert ex.value.last_state == "Updating"
    assert "timeout while waiting for state to become 'Active' (last state: 'Updating'" in str(ex.value)


def test_retry_when() -> None:
    calls: List[int] = []

    def flaky() -> str:
        calls.append(1)
        if len(calls) < 3:
            raise KeyError("not yet")
        return "done"

    assert retry_when(timedelta(seconds=5), flaky, lambda e: isinstance(e, KeyError)) == "done"
    assert len(calls) == 3

    def failing() -> str:
        raise ValueError("boom")

    # not retryable: raised immediately
    with pytest.raises(ValueError):
        retry_when(timedelta(seconds=5), failing, lambda e: isinstance(e, KeyError))

    def always_missing() -> str:
        raise KeyError("missing")

    # retryable, but the timeout elapses: the last error is raised
    with pytest.raises(KeyError):
        retry_when(timedelta(milliseconds=300), always_missing, lambda e: isinstance(e, KeyError))
