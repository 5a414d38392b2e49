"""
Errors raised by the sender.

Every error derives from :class:`SenderError` so callers can catch the whole
family in one place. Transport errors carry the phase of the connection
lifecycle that failed (connect, write or read) and the server address, and
timeouts also carry the timeout value that expired.
"""

from typing import Tuple


class SenderError(Exception):
    """ Base class for all errors raised by this library """


class ConfigError(SenderError):
    """ Invalid configuration file or value """


class TransportError(SenderError):
    """ An I/O failure in one phase of a connection's lifecycle """

    phase = "transfer"

    def __init__(self, addr: Tuple[str, int], reason: str):
        self.addr = addr
        self.reason = reason
        host, port = addr
        super().__init__(f"{self.phase} {host}:{port} failed: {reason}")


class TransportTimeout(TransportError):
    """ A connection phase did not complete within its timeout """

    def __init__(self, addr: Tuple[str, int], timeout: float):
        self.timeout = timeout
        super().__init__(addr, f"timed out after {timeout} seconds")


class ConnectFailure(TransportError):
    phase = "connect"


class ConnectTimeout(TransportTimeout):
    phase = "connect"


class WriteFailure(TransportError):
    phase = "write"


class WriteTimeout(TransportTimeout):
    phase = "write"


class ReadFailure(TransportError):
    phase = "read"


class ReadTimeout(TransportTimeout):
    phase = "read"


class ProtocolError(SenderError):
    """ The server reply does not follow the protocol """


class ProtocolHeaderMismatch(ProtocolError):
    def __init__(self, header: bytes):
        self.header = header
        super().__init__(f"Invalid response header: {header!r}")


class ResponseDecodeFailure(ProtocolError):
    """ The reply body is not a valid JSON response object """


class AcknowledgementParseFailure(ProtocolError):
    """ The reply could not be turned into a processed/failed summary """


class AutoregistrationFailed(SenderError):
    def __init__(self, host: str, info: str = ""):
        self.host = host
        self.info = info
        msg = f"Autoregistration of host '{host}' failed"
        if info:
            msg = f"{msg}: {info}"
        super().__init__(msg)
