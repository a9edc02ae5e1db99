"""
Interval Policy

Maps a self-reported difficulty rating to the delay before the item is due
again. Harder items come back sooner:

    Hard   -> 4 hours
    Medium -> 1 day
    Easy   -> 3 days
    Wait   -> 0 (due now)

The Hard/Medium/Easy delays can be overridden through configuration; Wait is
always immediate.
"""

from datetime import timedelta
from enum import IntEnum
from typing import Dict, Mapping, Optional, Union

from services.errors import InvalidDifficulty


class Difficulty(IntEnum):
    """Self-assessed recall difficulty"""
    WAIT = 0
    EASY = 1
    MEDIUM = 2
    HARD = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: Union['Difficulty', int, str]) -> 'Difficulty':
        """
        Convert a raw rating into a Difficulty.

        Accepts a Difficulty, an int 0-3, or a case-insensitive name such as
        'hard'. Anything else is a contract violation.

        Raises:
            InvalidDifficulty: If value is not one of the four ratings
        """
        if isinstance(value, cls):
            return value
        # bool is an int subclass; True is not a rating
        if isinstance(value, bool):
            raise InvalidDifficulty(f"Invalid difficulty: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidDifficulty(f"Invalid difficulty: {value!r}. Must be 0-3") from None
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            raise InvalidDifficulty(
                f"Invalid difficulty: {value!r}. Must be one of: {[d.name.lower() for d in cls]}"
            )
        raise InvalidDifficulty(f"Invalid difficulty type: {type(value).__name__}")


DEFAULT_DELAYS: Dict[Difficulty, timedelta] = {
    Difficulty.HARD: timedelta(hours=4),
    Difficulty.MEDIUM: timedelta(days=1),
    Difficulty.EASY: timedelta(days=3),
    Difficulty.WAIT: timedelta(0),
}


class IntervalPolicy:
    """Fixed difficulty -> delay table"""

    def __init__(self, delays: Optional[Mapping[Difficulty, timedelta]] = None):
        table = dict(DEFAULT_DELAYS)
        if delays:
            for difficulty, delay in delays.items():
                table[Difficulty.parse(difficulty)] = delay

        if table[Difficulty.WAIT] != timedelta(0):
            raise ValueError("Wait delay must be zero")
        if not (timedelta(0) < table[Difficulty.HARD] < table[Difficulty.MEDIUM] < table[Difficulty.EASY]):
            raise ValueError(
                "Review delays must satisfy 0 < hard < medium < easy, got "
                f"hard={table[Difficulty.HARD]}, medium={table[Difficulty.MEDIUM]}, "
                f"easy={table[Difficulty.EASY]}"
            )
        self._delays = table

    @classmethod
    def from_config(cls, config: Mapping) -> 'IntervalPolicy':
        """Build the policy from REVIEW_DELAY_*_MINUTES settings"""
        return cls({
            Difficulty.HARD: timedelta(minutes=config.get('REVIEW_DELAY_HARD_MINUTES', 4 * 60)),
            Difficulty.MEDIUM: timedelta(minutes=config.get('REVIEW_DELAY_MEDIUM_MINUTES', 24 * 60)),
            Difficulty.EASY: timedelta(minutes=config.get('REVIEW_DELAY_EASY_MINUTES', 3 * 24 * 60)),
        })

    def next_delay(self, difficulty: Union[Difficulty, int, str]) -> timedelta:
        """
        Delay until an item rated `difficulty` is due again.

        Raises:
            InvalidDifficulty: If difficulty is not a defined rating
        """
        return self._delays[Difficulty.parse(difficulty)]

    def as_dict(self) -> Dict[str, int]:
        """Delays in minutes keyed by lower-case difficulty name"""
        return {d.name.lower(): int(self._delays[d].total_seconds() // 60) for d in Difficulty}


_default_policy = IntervalPolicy()


def next_delay(difficulty: Union[Difficulty, int, str]) -> timedelta:
    """next_delay using the built-in 4h / 1d / 3d table"""
    return _default_policy.next_delay(difficulty)
