"""Exceptions raised by the review scheduling services"""


class SchedulingError(Exception):
    """Base class for review scheduling errors"""


class InvalidDifficulty(SchedulingError, ValueError):
    """Difficulty rating outside Wait/Easy/Medium/Hard"""


class InvalidTimestamp(SchedulingError, ValueError):
    """Future-dated or otherwise unacceptable timestamp"""


class NotFound(SchedulingError, LookupError):
    """Learner or entry does not exist and cannot be created implicitly"""


class StoreUnavailable(SchedulingError, RuntimeError):
    """The backing database failed; callers decide whether to retry"""
