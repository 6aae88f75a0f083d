"""
Exceptions that may be visible to users of siteblock.

Everything below the proxy layer uses builtin exceptions (mostly ValueError and
OSError) and is translated into HTTP responses or log messages by the
connection handler. We only specialize where callers need to tell errors apart.
"""


class SiteblockException(Exception):
    """
    Base class for all exceptions thrown by siteblock.
    """

    def __init__(self, message=None):
        super().__init__(message)


class OptionsError(SiteblockException):
    pass


class ProtocolError(SiteblockException):
    """
    The client sent a request we cannot frame, e.g. a CONNECT without a valid
    target or a plain request without a Host header.
    """
