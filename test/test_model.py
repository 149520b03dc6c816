import logging
import unittest
import uuid

import peewee

from topicq import model


class JSONFieldTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.field = model.JSONField()

    def test_db_value(self):
        value = {"b": 1, "a": [1, None, True], "c": {"d": "é"}}
        assert self.field.db_value(value) == '{"b":1,"a":[1,null,true],"c":{"d":"é"}}'

    def test_python_value(self):
        value = self.field.python_value('{"b":1,"a":[1,null,true]}')
        assert value == {"b": 1, "a": [1, None, True]}
        assert list(value) == ["b", "a"]

    def test_none(self):
        assert self.field.db_value(None) is None
        assert self.field.python_value(None) is None


class ModelClsFactoryTestCase(unittest.TestCase):
    def test_generate_task_cls(self):
        db = model.get_sqlite_database(":memory:")
        task_cls = model.ModelClsFactory(prefix="mail", database=db).generate_task_cls()
        assert task_cls.__name__ == "MailTask"
        assert task_cls._meta.database is db
        assert issubclass(task_cls, model.Task)

    def test_id_str(self):
        task_id = uuid.uuid4()
        assert model.Task(id=task_id).id_str == task_id.hex

    def test_generate_model_class_bind(self):
        db = model.get_sqlite_database(":memory:")
        task_cls = model.generate_model_class(model.Task, prefix="bulk_mail", database=db)
        assert task_cls.__name__ == "BulkMailTask"
        assert task_cls._meta.database is db

        unbound_cls = model.generate_model_class(model.Task, prefix="sms")
        assert unbound_cls.__name__ == "SmsTask"


class EnableDebugLoggingTestCase(unittest.TestCase):
    def setUp(self) -> None:
        level = peewee.logger.level
        handlers = list(peewee.logger.handlers)

        def restore():
            peewee.logger.setLevel(level)
            peewee.logger.handlers[:] = handlers

        self.addCleanup(restore)

    def test_enable_debug_logging(self):
        handlers = list(peewee.logger.handlers)
        model.enable_debug_logging()
        assert peewee.logger.level == logging.DEBUG
        assert len(peewee.logger.handlers) == len(handlers) + 1
        assert isinstance(peewee.logger.handlers[-1], logging.StreamHandler)

    def test_enable_debug_logging_without_handler(self):
        handlers = list(peewee.logger.handlers)
        model.enable_debug_logging(disable_handler=True)
        assert peewee.logger.level == logging.DEBUG
        assert peewee.logger.handlers == handlers

    def test_sql_logged(self):
        model.enable_debug_logging(disable_handler=True)
        db = model.get_sqlite_database(":memory:")
        task_cls = model.ModelClsFactory(prefix="log", database=db).generate_task_cls()
        with self.assertLogs(peewee.logger, level=logging.DEBUG) as cm:
            with db:
                db.create_tables([task_cls])
        assert any("log_task" in line for line in cm.output)
