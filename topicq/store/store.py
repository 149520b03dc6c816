import datetime
import functools
import logging
import time
from typing import Any

import peewee

from topicq import configuration, errors, model, task_queue
from topicq.task import Task, TaskMeta, TaskState
from topicq.task_queue import ReclaimResult

logger = logging.getLogger(name=__name__)

retry_sqlite_db_table_locked = functools.partial(
    model.retry_sqlite_db_table_locked, logger=logger
)


def _to_utc_datetime(value: datetime.datetime | None) -> datetime.datetime | None:
    # TimestampField gives naive local time
    if value is None:
        return None
    return value.astimezone(datetime.timezone.utc)


def build_task_from_model(task: model.Task) -> Task:
    return Task(
        id=task.id_str,
        topic=task.topic,
        payload=task.payload,
        state=TaskState(task.state),
        tries=task.tries,
        maxtries=task.maxtries,
        message=task.message,
        meta=TaskMeta(
            created=_to_utc_datetime(task.created_at),
            dispatched=_to_utc_datetime(task.dispatched_at),
            completed=_to_utc_datetime(task.completed_at),
        ),
    )


class TaskStore(task_queue.TaskQueue):
    """Task lifecycle on top of a SQLite table.

    Each operation is a single statement (reclaim runs two independent ones), so the database is the only synchronization point between producers, consumers and maintenance callers, whichever process they live in.
    """

    def __init__(
        self,
        database: peewee.Database,
        task_cls: type[model.Task],
        config_fetcher: configuration.ConfigurationFetcher | None = None,
    ):
        self._db = database
        self._task_cls = task_cls
        self._config_fetcher = config_fetcher or configuration.ConfigurationFetcher()

    @property
    def _config(self) -> configuration.QueueConfiguration:
        return self._config_fetcher.queue_configuration

    @errors.translate_store_errors
    @retry_sqlite_db_table_locked
    def enqueue(
        self,
        topic: str,
        payload: dict[str, Any] | None = None,
        maxtries: int | None = None,
    ) -> str:
        if maxtries is None:
            maxtries = self._config_fetcher.maxtries_for(topic)

        with self._db.connection_context():
            task: model.Task = self._task_cls.create(
                topic=topic,
                payload=payload if payload is not None else {},
                state=TaskState.PENDING.value,
                tries=0,
                maxtries=maxtries,
                message="",
                created_at=time.time(),
                dispatched_at=None,
                completed_at=None,
            )

        logger.debug(f"enqueued task {task.id_str} to '{topic}'")
        return task.id_str

    # ---- Lease ---

    def _build_lease_query(self, topic: str, current_ts: float):
        """UPDATE ... WHERE id = (SELECT id ... LIMIT 1) RETURNING ...

        The candidate selection and the update are one statement, so SQLite runs them under the same write lock and two callers can never claim the same task. Which candidate is picked is up to the query planner (the index order of (topic, state), roughly the insertion order).
        """
        task_cls = self._task_cls
        candidate = task_cls.alias("candidate")
        candidate_query = (
            candidate.select(candidate.id)
            .where(
                (candidate.topic == topic)
                & (candidate.state == TaskState.PENDING.value)
                & (candidate.tries < candidate.maxtries)
            )
            .limit(1)
        )
        return (
            task_cls.update(
                state=TaskState.RUNNING.value,
                dispatched_at=current_ts,
                tries=task_cls.tries + 1,
            )
            .where(
                (task_cls.id == candidate_query)
                & (task_cls.state == TaskState.PENDING.value)
            )
            .returning(task_cls)
        )

    @errors.translate_store_errors
    @retry_sqlite_db_table_locked
    def lease(self, topic: str) -> Task | None:
        query = self._build_lease_query(topic, time.time())
        with self._db.connection_context():
            leased = list(query.execute())

        if not leased:
            return None

        task = build_task_from_model(leased[0])
        logger.debug(f"leased task {task.id} from '{topic}', try {task.tries}")
        return task

    # ---- End: Lease ---

    # ---- ACK ---

    def _update_task_for_ack(self, task_id: str, state: TaskState, **data) -> bool:
        """Moves the task into a terminal state.

        Without `guard_terminal_transitions` the update doesn't look at the current state, so a late consumer may overwrite the result of another one.
        """
        task_cls = self._task_cls
        condition = task_cls.id == task_id
        if self._config.guard_terminal_transitions:
            condition &= task_cls.state == TaskState.RUNNING.value

        with self._db.connection_context():
            updated = (
                task_cls.update(state=state.value, completed_at=time.time(), **data)
                .where(condition)
                .execute()
            )
            if not updated:
                self._handle_not_updated(task_id, state)

        return bool(updated)

    def _handle_not_updated(self, task_id: str, state: TaskState):
        exists = self._task_cls.select().where(self._task_cls.id == task_id).exists()
        if not exists:
            if self._config.raise_on_missing:
                raise errors.TaskNotFound(task_id)
            logger.debug(f"task {task_id} doesn't exist, skip marking it {state}")
        else:
            logger.warning(f"task {task_id} is not running, skip marking it {state}")

    @errors.translate_store_errors
    @retry_sqlite_db_table_locked
    def ack(self, task_id: str) -> bool:
        return self._update_task_for_ack(task_id, TaskState.COMPLETED)

    @errors.translate_store_errors
    @retry_sqlite_db_table_locked
    def fail(self, task_id: str, message: str = "") -> bool:
        return self._update_task_for_ack(task_id, TaskState.ERROR, message=message)

    # ---- END: ACK ---

    # ---- Reclaim ---

    def _scoped(self, condition, topic: str | None):
        if topic is None:
            return condition
        return (self._task_cls.topic == topic) & condition

    @retry_sqlite_db_table_locked
    def _requeue_orphaned(self, topic: str | None) -> int:
        """The consumer crashed or hung if it holds the task longer than the timeout. The failed try still counts."""
        task_cls = self._task_cls
        cutoff = time.time() - self._config.reclaim_timeout_seconds
        condition = self._scoped(
            (task_cls.state == TaskState.RUNNING.value)
            & (task_cls.dispatched_at < cutoff),
            topic,
        )
        with self._db.connection_context():
            return (
                task_cls.update(state=TaskState.PENDING.value, dispatched_at=None)
                .where(condition)
                .execute()
            )

    @retry_sqlite_db_table_locked
    def _retire_exhausted(self, topic: str | None) -> int:
        task_cls = self._task_cls
        condition = self._scoped(
            (task_cls.state == TaskState.PENDING.value)
            & (task_cls.tries >= task_cls.maxtries),
            topic,
        )
        with self._db.connection_context():
            return (
                task_cls.update(state=TaskState.ERROR.value)
                .where(condition)
                .execute()
            )

    @errors.translate_store_errors
    def reclaim(self, topic: str | None = None) -> ReclaimResult:
        result = ReclaimResult(
            requeued=self._requeue_orphaned(topic),
            retired=self._retire_exhausted(topic),
        )
        if result.requeued or result.retired:
            logger.info(
                "reclaimed %s: %d requeued, %d retired",
                topic if topic is not None else "all topics",
                result.requeued,
                result.retired,
            )
        return result

    # ---- End: Reclaim ---

    @errors.translate_store_errors
    @retry_sqlite_db_table_locked
    def create_indexes(self):
        with self._db.connection_context():
            self._task_cls._schema.create_indexes(safe=True)

    @errors.translate_store_errors
    @retry_sqlite_db_table_locked
    def count(self, topic: str | None = None, state: str | None = None) -> int:
        task_cls = self._task_cls
        query = task_cls.select(peewee.fn.COUNT(task_cls.id))
        if topic is not None:
            query = query.where(task_cls.topic == topic)
        if state is not None:
            query = query.where(task_cls.state == TaskState(state).value)

        with self._db.connection_context():
            return query.scalar()
