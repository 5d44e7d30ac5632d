"""Engine configuration."""

from loadguard.config.settings import VALID_EXPERIENCE_LEVELS, Settings

__all__ = ["VALID_EXPERIENCE_LEVELS", "Settings"]
