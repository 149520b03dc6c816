import dataclasses
import datetime
import enum
from typing import Any


class TaskState(enum.StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclasses.dataclass
class TaskMeta:
    created: datetime.datetime
    dispatched: datetime.datetime | None = None
    completed: datetime.datetime | None = None

    def to_dict(self) -> dict[str, datetime.datetime | None]:
        return dataclasses.asdict(self)


@dataclasses.dataclass
class Task:
    id: str
    topic: str
    payload: dict[str, Any]
    state: TaskState
    tries: int
    maxtries: int
    meta: TaskMeta
    message: str = ""
