"""
Exception hierarchy for the ILIAS synchronizer.
"""


class IliasError(Exception):
    """Base class for all errors raised while syncing."""
    pass


class FetchError(IliasError):
    """Transport failure or unexpected HTTP status."""
    pass


class ServiceError(IliasError):
    """ILIAS rendered an error banner despite a successful response."""
    pass


class ParseError(IliasError):
    """An expected element, attribute or pattern is missing from a page."""
    pass


class LoginError(IliasError):
    """Authentication failed. Fatal for the whole run."""
    pass
