"""
Error types raised by the sailing engine.

Every failure the engine surfaces to a caller derives from SailingEngineError,
so callers can catch the whole family or a specific kind.
"""


class SailingEngineError(Exception):
    """Base class for all engine failures"""


class ValidationError(SailingEngineError, ValueError):
    """Numeric or structural input outside its allowed range"""


class ConfigNotFound(SailingEngineError, LookupError):
    """No sail configuration matches the request"""


class NoActiveRoute(SailingEngineError):
    """Navigation asked for while no route is being tracked"""


class ForecastError(SailingEngineError):
    """
    A forecast provider could not produce a forecast.

    `reason` is one of MISSING_CREDENTIALS, NETWORK or MALFORMED.
    """

    MISSING_CREDENTIALS = "missing_credentials"
    NETWORK = "network"
    MALFORMED = "malformed"

    def __init__(self, message: str, reason: str = NETWORK):
        super().__init__(message)
        self.reason = reason
