import functools
import json
import logging
import uuid
from typing import TypeVar

import peewee
from playhouse import pool


NullableMilliTimeStampField = functools.partial(
    peewee.TimestampField, resolution=3, null=True, default=None
)
CurrrentMilliTimeStampField = functools.partial(peewee.TimestampField, resolution=3)


class BinaryUUIDField(peewee.BinaryUUIDField):
    def db_value(self, value):
        if isinstance(value, str) and len(value) == 32:
            return self._constructor(uuid.UUID(value).bytes)
        return super().db_value(value)


class JSONField(peewee.TextField):
    """Stores any JSON document as text. Mapping key order survives the round trip."""

    def db_value(self, value):
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    def python_value(self, value):
        if value is None:
            return None
        return json.loads(value)


class BaseModel(peewee.Model):
    class Meta:
        # will be default in Peewee 4.0, table name will be snakecase
        legacy_table_names = False


class Task(BaseModel):
    id = BinaryUUIDField(primary_key=True, default=uuid.uuid4)
    topic = peewee.CharField()
    payload = JSONField(default=dict)
    state = peewee.CharField(max_length=16, default="pending")
    tries = peewee.IntegerField(default=0)
    maxtries = peewee.IntegerField()
    message = peewee.TextField(default="")
    created_at = CurrrentMilliTimeStampField()
    dispatched_at = NullableMilliTimeStampField()
    completed_at = NullableMilliTimeStampField()

    class Meta:
        indexes = ((("topic", "state"), False),)

    @property
    def id_str(self):
        return self.id.hex  # type: ignore


def get_sqlite_database(
    name: str = "topicq.db", pool_size: int = 0, check_same_thread=True, uri=False
):
    """If pool_size > 0, check_same_thread could be used to allow the SQLite connection to be shared across threads, but you should take care of not using the same connection at the same time in different threads."""
    # https://docs.peewee-orm.com/en/latest/peewee/database.html#recommended-settings
    pragmas = {
        "journal_mode": "wal",
        "cache_size": -1 * 64000,  # 64MB
        "foreign_keys": 1,
        "ignore_check_constraints": 0,
        "synchronous": 0,
    }
    if pool_size:
        # https://docs.peewee-orm.com/en/latest/peewee/playhouse.html#PooledDatabase
        return pool.PooledSqliteDatabase(
            name,
            max_connections=pool_size,
            stale_timeout=3600,
            timeout=0,  # block forever if pool is full
            pragmas=pragmas,
            autoconnect=False,
            # https://stackoverflow.com/a/48234567
            check_same_thread=check_same_thread,
            uri=uri,
        )
    return peewee.SqliteDatabase(name, pragmas=pragmas, autoconnect=False, uri=uri)


M = TypeVar("M", bound=type[BaseModel])


def generate_model_class(
    model_class: M,
    prefix: str = "default",
    database: peewee.Database | None = None,
) -> M:
    cls_name_prefix = "".join(map(str.capitalize, prefix.split("_")))
    cls = type(cls_name_prefix + model_class.__name__, (model_class,), {})
    if database:
        database.bind([cls])
    return cls


class ModelClsFactory:
    def __init__(
        self, prefix: str = "default", database: peewee.Database | None = None
    ):
        self._prefix = prefix
        self._database = database or get_sqlite_database()

    def generate_task_cls(self) -> type[Task]:
        return generate_model_class(
            Task, prefix=self._prefix, database=self._database
        )


def enable_debug_logging(disable_handler=False):
    peewee.logger.setLevel(logging.DEBUG)
    if not disable_handler:
        peewee.logger.addHandler(logging.StreamHandler())


F = TypeVar("F")


def retry_sqlite_db_table_locked(f: F, logger=None) -> F:
    logger = logger or logging.getLogger("RetrySqliteDbTableLocked")

    @functools.wraps(f)
    def wrap(*args, **kwargs):
        while True:
            try:
                return f(*args, **kwargs)
            except peewee.OperationalError as e:
                if "database table is locked" in e.args[0]:
                    logger.warning(f"{f.__name__}: Retry the method as {e}")
                    continue
                raise

    return wrap
