import logging
import time
from datetime import timedelta
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from attrs import define, field
from retrying import Retrying, RetryError

from tflib.durations import duration_str
from tflib.errors import NotFoundError, UnexpectedStateError, WaitTimeoutError

log = logging.getLogger("tf." + __name__)

T = TypeVar("T")

# A refresh function returns the current object (None if it does not exist) and its state.
RefreshFn = Callable[[], Tuple[Optional[Any], str]]


def _millis(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


@define
class StateChangeConf:
    """
    Poll a refresh function until the returned state is one of the target states.

    - A state that is neither pending nor target fails the wait with UnexpectedStateError.
    - An object that does not exist is success, if no target state is defined (wait for deletion).
      Otherwise the wait fails with NotFoundError after `not_found_checks` consecutive polls.
    - If the timeout elapses, WaitTimeoutError is raised.
    """

    pending: List[str]
    target: List[str]
    refresh: RefreshFn
    timeout: timedelta
    delay: timedelta = timedelta(0)
    poll_interval: timedelta = timedelta(seconds=10)
    not_found_checks: int = 20
    _last_state: str = field(default="", init=False)
    _not_found: int = field(default=0, init=False)

    def _poll(self) -> Tuple[bool, Optional[Any]]:
        result, state = self.refresh()
        if result is None:
            if not self.target:
                return True, None
            self._not_found += 1
            if self._not_found > self.not_found_checks:
                raise NotFoundError(f"couldn't find resource ({self._not_found} retries)")
            return False, None
        self._not_found = 0
        self._last_state = state
        if state in self.target:
            return True, result
        if state not in self.pending:
            raise UnexpectedStateError(state, self.target, result)
        log.debug(f"Waiting for state to become: {self.target}, current state: {state}")
        return False, result

    def wait_for_state(self) -> Optional[Any]:
        self._last_state = ""
        self._not_found = 0
        if self.delay:
            time.sleep(self.delay.total_seconds())
        try:
            _, result = Retrying(
                stop_max_delay=_millis(self.timeout),
                wait_fixed=_millis(self.poll_interval),
                retry_on_result=lambda r: not r[0],
                retry_on_exception=lambda _: False,
            ).call(self._poll)
            return result
        except RetryError as e:
            raise WaitTimeoutError(self._last_state, self.target, duration_str(self.timeout)) from e


def retry_when(
    timeout: timedelta,
    fn: Callable[[], T],
    retryable: Callable[[Exception], bool],
    wait_max: timedelta = timedelta(seconds=5),
) -> T:
    """
    Call fn until it returns without an error or the error is not retryable.
    After the timeout the last error is raised.
    """

    def should_retry(e: Exception) -> bool:
        if retryable(e):
            log.debug(f"Retryable error: {e}")
            return True
        return False

    return Retrying(  # type: ignore
        stop_max_delay=_millis(timeout),
        wait_exponential_multiplier=100,
        wait_exponential_max=_millis(wait_max),
        retry_on_exception=should_retry,
    ).call(fn)
