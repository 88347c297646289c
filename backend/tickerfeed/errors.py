from __future__ import annotations


class TickerfeedError(Exception):
    """Base class for retrieval failures."""


class NetworkError(TickerfeedError):
    """The request was rejected or timed out before a response arrived."""


class HttpStatusError(TickerfeedError):
    def __init__(self, status_code: int, reason: str = "") -> None:
        super().__init__(f"HTTP {status_code} {reason}".strip())
        self.status_code = status_code


class ParseError(TickerfeedError):
    """The body was empty, malformed or had an unexpected shape."""


class AllProxiesFailedError(TickerfeedError):
    def __init__(self, target_url: str, last_error: BaseException | None) -> None:
        super().__init__(f"all relays failed for {target_url}: {last_error}")
        self.target_url = target_url
        self.last_error = last_error


class NoDataError(TickerfeedError):
    def __init__(self, symbol: str) -> None:
        super().__init__(f"no usable price for {symbol}")
        self.symbol = symbol
