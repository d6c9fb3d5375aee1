"""Exceptions raised by swrcache."""


class SWRError(Exception):
    """Base class for swrcache errors."""


class FetchError(SWRError):
    """A fetch function could not produce a value."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
