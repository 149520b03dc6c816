from .reclaim_worker import ReclaimWorker
from .store import TaskStore, build_task_from_model

__all__ = ["TaskStore", "ReclaimWorker", "build_task_from_model"]
