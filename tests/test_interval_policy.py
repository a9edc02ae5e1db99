"""
Unit tests for the interval policy.

Tests the difficulty -> delay mapping including:
- The default 4h / 1d / 3d table
- Parsing of ints, names and enum members
- Rejection of unknown ratings
- Configuration-driven tables
"""

import sys
import os
import pytest
from datetime import timedelta

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.errors import InvalidDifficulty
from services.interval_policy import Difficulty, IntervalPolicy, next_delay


class TestNextDelay:
    """Test the default delay table"""

    def test_default_delays(self):
        """Hard=4h, Medium=1d, Easy=3d, Wait=0"""
        assert next_delay(Difficulty.HARD) == timedelta(hours=4)
        assert next_delay(Difficulty.MEDIUM) == timedelta(days=1)
        assert next_delay(Difficulty.EASY) == timedelta(days=3)
        assert next_delay(Difficulty.WAIT) == timedelta(0)

    def test_delays_strictly_ordered(self):
        """Harder ratings always come back sooner"""
        assert next_delay(3) < next_delay(2) < next_delay(1)
        assert next_delay(0) == timedelta(0)

    def test_deterministic(self):
        """Same rating always yields the same delay"""
        for difficulty in Difficulty:
            assert next_delay(difficulty) == next_delay(difficulty)
            assert next_delay(int(difficulty)) == next_delay(difficulty)

    def test_accepts_names(self):
        """Names are case-insensitive"""
        assert next_delay('hard') == timedelta(hours=4)
        assert next_delay(' Medium ') == timedelta(days=1)

    @pytest.mark.parametrize('bad', [-1, 4, 99, 'impossible', 2.0, None, True])
    def test_rejects_invalid_difficulty(self, bad):
        """Out-of-range or wrongly typed ratings raise InvalidDifficulty"""
        with pytest.raises(InvalidDifficulty):
            next_delay(bad)

    def test_invalid_difficulty_is_value_error(self):
        """Route handlers map ValueError to 400"""
        with pytest.raises(ValueError):
            Difficulty.parse(7)


class TestDifficulty:

    def test_labels(self):
        assert [d.label for d in Difficulty] == ['Wait', 'Easy', 'Medium', 'Hard']

    def test_parse_returns_member(self):
        assert Difficulty.parse(3) is Difficulty.HARD
        assert Difficulty.parse(Difficulty.EASY) is Difficulty.EASY


class TestConfiguredPolicy:
    """Test configuration-driven delay tables"""

    def test_from_config(self):
        """REVIEW_DELAY_* settings override the defaults"""
        policy = IntervalPolicy.from_config({
            'REVIEW_DELAY_HARD_MINUTES': 60,
            'REVIEW_DELAY_MEDIUM_MINUTES': 600,
            'REVIEW_DELAY_EASY_MINUTES': 6000,
        })

        assert policy.next_delay(Difficulty.HARD) == timedelta(hours=1)
        assert policy.next_delay(Difficulty.MEDIUM) == timedelta(hours=10)
        assert policy.next_delay(Difficulty.EASY) == timedelta(minutes=6000)
        assert policy.next_delay(Difficulty.WAIT) == timedelta(0)

    def test_from_empty_config_uses_defaults(self):
        policy = IntervalPolicy.from_config({})
        assert policy.as_dict() == {'wait': 0, 'easy': 4320, 'medium': 1440, 'hard': 240}

    def test_rejects_misordered_table(self):
        """Hard must stay shorter than Medium, which must stay shorter than Easy"""
        with pytest.raises(ValueError):
            IntervalPolicy({Difficulty.HARD: timedelta(days=2)})

    def test_rejects_nonzero_wait(self):
        with pytest.raises(ValueError):
            IntervalPolicy({Difficulty.WAIT: timedelta(minutes=5)})
