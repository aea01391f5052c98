"""Exception taxonomy for excavation control."""


class ExcavatorError(RuntimeError):
    """Base class for errors raised by the excavation controller."""


class AlreadyMiningError(ExcavatorError):
    """Raised when a fresh excavation is requested while one is already running."""


class BotBusyError(ExcavatorError):
    """Raised when mining and base travel would overlap."""


class BaseNotConfiguredError(ExcavatorError):
    """Raised when base travel is requested without base coordinates."""


class PathTimeoutError(ExcavatorError):
    """Raised when the goal-solver does not reach its goal within the adaptive timeout."""


class DigTimeoutError(ExcavatorError):
    """Raised when a block is not broken within the adaptive dig timeout."""
