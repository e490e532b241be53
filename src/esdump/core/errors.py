"""Exceptions raised by the dump engine."""


class DumpException(Exception):
    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class SourceUnavailable(DumpException):
    """Connection or timeout failure talking to a transport. Retryable."""


class CursorExpired(DumpException):
    """The source no longer recognizes the cursor token (lease exceeded)."""


class MalformedRecord(DumpException):
    """A fetched unit could not be decoded into a Record."""


class DestinationRejected(DumpException):
    """The destination refused a specific write."""


class ConfigurationInvalid(DumpException):
    """Incompatible options or transports; raised before any I/O happens."""


class TransportNotFoundException(ConfigurationInvalid):
    ...
