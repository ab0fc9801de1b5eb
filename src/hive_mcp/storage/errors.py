"""Errors raised by the feature/task state store."""

from __future__ import annotations


class StateStoreError(RuntimeError):
    """Base class for state store errors."""


class FeatureExistsError(StateStoreError):
    """Raised when creating a feature whose record already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Feature '{name}' already exists")
        self.name = name


class FeatureNotFoundError(StateStoreError):
    """Raised when a write targets a feature with no record."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Feature '{name}' not found")
        self.name = name


class FeatureAlreadyCompletedError(StateStoreError):
    """Raised when completing a feature that is already completed."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Feature '{name}' is already completed")
        self.name = name


class TaskExistsError(StateStoreError):
    """Raised when creating a task folder that already holds a record."""

    def __init__(self, feature: str, folder: str) -> None:
        super().__init__(f"Task '{folder}' already exists in feature '{feature}'")
        self.feature = feature
        self.folder = folder


class TaskNotFoundError(StateStoreError):
    """Raised when a write targets a task with no record."""

    def __init__(self, feature: str, folder: str) -> None:
        super().__init__(f"Task '{folder}' not found in feature '{feature}'")
        self.feature = feature
        self.folder = folder


class LockTimeoutError(StateStoreError):
    """Raised when a record lock cannot be acquired in time."""


__all__ = [
    "FeatureAlreadyCompletedError",
    "FeatureExistsError",
    "FeatureNotFoundError",
    "LockTimeoutError",
    "StateStoreError",
    "TaskExistsError",
    "TaskNotFoundError",
]
