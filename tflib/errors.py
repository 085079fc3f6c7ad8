from typing import Any, List, Optional


class ProviderError(Exception):
    """
    Raised by resource callbacks. The message carries the context of the failed operation.
    """


class NotFoundError(ProviderError):
    def __init__(self, message: str = "couldn't find resource", last_request: Optional[Any] = None) -> None:
        super().__init__(message)
        self.last_request = last_request


class UnexpectedStateError(ProviderError):
    def __init__(self, state: str, expected: List[str], result: Optional[Any] = None) -> None:
        super().__init__(f"unexpected state '{state}', wanted target '{', '.join(expected)}'")
        self.state = state
        self.expected = expected
        self.result = result


class WaitTimeoutError(ProviderError):
    def __init__(self, last_state: str, expected: List[str], timeout: str) -> None:
        super().__init__(
            f"timeout while waiting for state to become '{', '.join(expected)}' "
            f"(last state: '{last_state}', timeout: {timeout})"
        )
        self.last_state = last_state
        self.expected = expected
