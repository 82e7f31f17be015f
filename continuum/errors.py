"""Exception hierarchy for level content and progression errors."""


class ContinuumLearnError(Exception):
    """Base exception for all application errors."""
    pass


class LevelConfigError(ContinuumLearnError):
    """Raised when level content is malformed or references an unknown parameter."""

    def __init__(self, message: str, level_id=None):
        self.level_id = level_id
        prefix = f"Level {level_id}: " if level_id is not None else ""
        super().__init__(f"{prefix}{message}")


class LevelNotFoundError(ContinuumLearnError):
    """Raised when a level id is not part of the loaded level table."""

    def __init__(self, level_id: int):
        self.level_id = level_id
        super().__init__(f"Level {level_id} not found")
