"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class SimulationAlreadyRunningError(DomainException):
    """Scheduler was started twice"""

    pass


class InvalidConfigurationError(DomainException):
    """Sandbox configuration update carried an unknown mode or bad value"""

    pass
