import abc
import dataclasses
from abc import abstractmethod
from typing import Any

from topicq.task import Task


@dataclasses.dataclass(frozen=True)
class ReclaimResult:
    requeued: int = 0
    retired: int = 0


class TaskQueue(abc.ABC):
    """
    This is the interface of the topic queue. Tasks are addressed by topic, and a consumer only ever leases tasks of the topic it asks for.
    """

    @abstractmethod
    def enqueue(
        self,
        topic: str,
        payload: dict[str, Any] | None = None,
        maxtries: int | None = None,
    ) -> str:
        """Adds a pending task to the topic and returns its id. Duplicated payloads are different tasks."""
        pass

    @abstractmethod
    def lease(self, topic: str) -> Task | None:
        """Claims one pending task of the topic for exclusive processing.

        The task is moved to the running status with its tries increased, and the updated task is returned. Returns None if there is no pending task with remaining tries in the topic.
        """
        pass

    @abstractmethod
    def ack(self, task_id: str) -> bool:
        """Marks the task as completed.

        Returns: whether a task was updated. An unknown task id is not an error.
        """
        pass

    @abstractmethod
    def fail(self, task_id: str, message: str = "") -> bool:
        """Marks the task as failed permanently with the error message, no matter how many tries are left.

        Returns: whether a task was updated.
        """
        pass

    @abstractmethod
    def reclaim(self, topic: str | None = None) -> ReclaimResult:
        """Puts the running tasks whose lease timed out back to pending, and moves the pending tasks without remaining tries to error.

        It is expected to be called periodically, e.g. by `ReclaimWorker`.
        """
        pass

    @abstractmethod
    def count(self, topic: str | None = None, state: str | None = None) -> int:
        pass
