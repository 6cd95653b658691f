"""Exception hierarchy for capweight.

Exchange failures are not raised; they travel as
:class:`capweight.models.exchange.ExchangeResult` values. The exceptions
below cover caller errors and invalid configuration.
"""


class CapweightError(Exception):
    """Base exception for all capweight errors."""


class ConfigurationError(CapweightError):
    """Raised when a configuration file or override cannot be loaded."""


class PortfolioError(CapweightError):
    """Base exception for portfolio model invariant violations."""


class AlreadyExistsError(PortfolioError):
    """Raised when an allocation for the same market is already in a balance."""


class InvalidObjectError(PortfolioError):
    """Raised when an allocation cannot be attached to a balance.

    Examples:
        - Quote symbol of the allocation's market differs from the balance's
        - Allocation is already owned by another balance
    """
