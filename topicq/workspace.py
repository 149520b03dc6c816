import abc
from abc import abstractmethod
from pathlib import Path

import peewee
from playhouse import pool

from topicq import configuration, model
from topicq.store import ReclaimWorker, TaskStore


class Workspace(abc.ABC):
    """A workspace is the set of topic queues sharing one task table. It contains the `TaskStore` used by producers, consumers and maintenance callers, and initializes all the prerequisites (table and index) for it. The database and the model class are exposed as well to interact with the underlying data."""

    @abstractmethod
    def __init__(self, name: str) -> None:
        pass

    @abstractmethod
    def init(self):
        """Do all the initialization work in the workspace"""

    @abstractmethod
    def flush_all(self):
        """Clear all data in the workspace"""

    @abstractmethod
    def close(self):
        pass

    @property
    @abstractmethod
    def database(self) -> peewee.Database:
        pass

    @property
    @abstractmethod
    def model_cls_factory(self) -> model.ModelClsFactory:
        pass

    @property
    @abstractmethod
    def task_store(self) -> TaskStore:
        pass


class DefaultWorkspace(Workspace):
    def __init__(
        self,
        name: str = "default",
        *,
        database: peewee.Database | None = None,
        configuration_dir: Path | None = None,
    ) -> None:
        self.name = name
        self._db = database
        self._configuration_dir = configuration_dir
        self._task_cls: type[model.Task] | None = None
        self._task_store = None

    def init(self):
        """Do all the initialization work, such as table and index creation in the workspace"""
        with self.database:
            self.database.create_tables([self.task_cls])

    def flush_all(self):
        """Clear all data in the workspace"""
        with self.database:
            self.task_cls.truncate_table()

    def close(self):
        if not self._db:
            return
        if isinstance(self._db, pool.PooledDatabase):
            self._db.close_all()
        else:
            self._db.close()

    @property
    def database(self) -> peewee.Database:
        if not self._db:
            self._db = model.get_sqlite_database(f"{self.name}.db")
        return self._db

    @property
    def model_cls_factory(self) -> model.ModelClsFactory:
        return model.ModelClsFactory(prefix=self.name, database=self.database)

    @property
    def task_cls(self) -> type[model.Task]:
        if not self._task_cls:
            self._task_cls = self.model_cls_factory.generate_task_cls()
        return self._task_cls

    @property
    def configuration_fetcher(self) -> configuration.ConfigurationFetcher:
        loader = configuration.ConfigurationDataLoader(
            self.name, configuration_dir=self._configuration_dir
        )
        return configuration.ConfigurationFetcher(loader)

    @property
    def task_store(self) -> TaskStore:
        if not self._task_store:
            self._task_store = TaskStore(
                database=self.database,
                task_cls=self.task_cls,
                config_fetcher=self.configuration_fetcher,
            )
        return self._task_store

    def reclaim_worker(
        self, interval: float = 60, topic: str | None = None
    ) -> ReclaimWorker:
        return ReclaimWorker(self.task_store, interval=interval, topic=topic)


class MemoryWorkspace(DefaultWorkspace):
    @property
    def database(self) -> peewee.Database:
        """Note: SQLite `:memory:` mode is a special mode where each time the connection is dropped, the data is lost

        https://stackoverflow.com/a/24708173
        https://www.sqlite.org/inmemorydb.html
        Shared in-memory databases: This allows separate database connections to share the same in-memory database. Of course, all database connections sharing the in-memory database need to be in the same process. The database is automatically deleted and memory is reclaimed when the last connection to the database closes.
        """

        if not self._db:
            uri = f"file:{self.name}?mode=memory&cache=shared"
            self._db = model.get_sqlite_database(
                uri, pool_size=5, check_same_thread=False, uri=True
            )
        return self._db
