from topicq.task_queue import TaskQueue, ReclaimResult
from topicq.task import Task, TaskMeta, TaskState
from topicq.errors import StoreUnavailable, TaskNotFound, TopicQueueError
from topicq.store import TaskStore, ReclaimWorker
from topicq.workspace import DefaultWorkspace, MemoryWorkspace, Workspace

__all__ = [
    "TaskQueue",
    "ReclaimResult",
    "Task",
    "TaskMeta",
    "TaskState",
    "StoreUnavailable",
    "TaskNotFound",
    "TopicQueueError",
    "TaskStore",
    "ReclaimWorker",
    "DefaultWorkspace",
    "MemoryWorkspace",
    "Workspace",
]
