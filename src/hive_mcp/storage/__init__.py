"""Feature and task state store for Hive MCP."""

from .errors import (
    FeatureAlreadyCompletedError,
    FeatureExistsError,
    FeatureNotFoundError,
    LockTimeoutError,
    StateStoreError,
    TaskExistsError,
    TaskNotFoundError,
)
from .features import FeatureStore
from .files import LockOptions
from .models import FeatureInfo, FeatureRecord, TaskInfo, TaskStatusRecord
from .tasks import TaskStore

__all__ = [
    "FeatureAlreadyCompletedError",
    "FeatureExistsError",
    "FeatureInfo",
    "FeatureNotFoundError",
    "FeatureRecord",
    "FeatureStore",
    "LockOptions",
    "LockTimeoutError",
    "StateStoreError",
    "TaskExistsError",
    "TaskInfo",
    "TaskNotFoundError",
    "TaskStatusRecord",
    "TaskStore",
]
