"""Exceptions raised by the JXA bridge."""


class BridgeError(Exception):
    """Base class for every failure of a bridge round trip."""


class BridgeTimeoutError(BridgeError, TimeoutError):
    """The osascript process exceeded its deadline and was killed.

    Side effects inside Mail may or may not have happened.
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f'Mail automation timed out after {timeout:g} seconds')


class ProtocolError(BridgeError):
    """The host produced output that is not a JSON payload."""

    def __init__(self, message: str, output: str = ''):
        self.output = output
        super().__init__(message)


class OutputLimitError(ProtocolError):
    """The host wrote more output than the configured cap."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f'Mail automation output exceeded {limit} bytes')


class HostExecutionError(BridgeError):
    """The generated program ran but the operation failed inside Mail."""

    def __init__(self, message: str, stack: str = '', returncode: int | None = None):
        self.message = message
        self.stack = stack
        self.returncode = returncode
        super().__init__(message)
