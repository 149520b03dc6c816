import functools
from typing import TypeVar

import peewee


class TopicQueueError(Exception):
    pass


class StoreUnavailable(TopicQueueError):
    """The database could not be reached or failed to execute the statement."""


class TaskNotFound(TopicQueueError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


F = TypeVar("F")


def translate_store_errors(f: F) -> F:
    @functools.wraps(f)
    def wrap(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (peewee.OperationalError, peewee.InterfaceError) as e:
            raise StoreUnavailable(f"{f.__name__}: {e}") from e

    return wrap
