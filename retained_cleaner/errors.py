"""Exceptions raised by retained-cleaner."""


class RetainedCleanerError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(RetainedCleanerError):
    """The config file is missing, unreadable or invalid."""


class BrokerError(RetainedCleanerError):
    """A broker call failed or was not acknowledged in time."""


class ConnectError(BrokerError):
    pass


class PublishError(BrokerError):
    pass


class SubscribeError(BrokerError):
    pass


class UnsubscribeError(BrokerError):
    pass
