"""Exception hierarchy for collection passes."""


class CollectorError(Exception):
    """Base exception for all collector errors."""


class StreamOpenError(CollectorError):
    """Raised when a report source cannot be opened."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"can't open {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StreamReadError(CollectorError):
    """Raised when reading a report fails part way through a pass."""


class NumericParseError(CollectorError):
    """Raised when a recognized field carries a value that is not a number."""

    def __init__(self, source: str, field: str, token: str | None, line_number: int) -> None:
        self.source = source
        self.field = field
        self.token = token
        self.line_number = line_number
        if token is None:
            detail = f"field {field!r} has no value token"
        else:
            detail = f"invalid value {token!r} for field {field!r}"
        super().__init__(f"can't parse {source} (line {line_number}): {detail}")


class NoDataFoundError(CollectorError):
    """Raised when a report contains no node/zone section at all."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"can't parse {source}: no node/zone section found")
