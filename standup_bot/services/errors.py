"""Exceptions raised by the stand-up services."""


class StandupError(Exception):
    """Base exception for stand-up operations."""
    pass


class TeamNotFoundError(StandupError):
    """No team is installed for the given Slack team id."""
    pass


class ConfigurationError(StandupError):
    """A configuration value is missing or malformed."""
    pass


class InvalidTickError(StandupError):
    """A scheduler tick is outside 00:00-23:59."""
    pass


class NotificationError(StandupError):
    """The outbound chat platform rejected or failed a call."""
    pass
