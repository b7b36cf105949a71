"""Exception types raised inside the coordinator."""


class TabSnapError(Exception):
    """Base class for coordinator errors."""

    pass


class CaptureError(TabSnapError):
    """A visible-area capture failed and should not be retried."""

    pass


class TabBusyError(CaptureError):
    """The tab cannot be captured right now (e.g. it is being dragged)."""

    pass


class CaptureTimeoutError(CaptureError):
    """The extension did not answer a capture request in time."""

    pass


class ConfigError(TabSnapError):
    """A settings update was rejected."""

    pass
