import tempfile
import unittest
from pathlib import Path

from topicq import configuration


class ConfigurationFetcherTestCase(unittest.TestCase):
    def setUp(self) -> None:
        config = self._create_config()
        self._config = config

        class Loader:
            def load(self):
                return config.to_dict()

        self._loader = Loader()

    def _get_fetcher(self):
        return configuration.ConfigurationFetcher(loader=self._loader)

    def _create_config(self):
        class Config:
            def __init__(self) -> None:
                self._data = {}

            def set(self, **kwargs):
                self._data.update(kwargs)

            def add_topic(self, name, maxtries):
                topics: list = self._data.setdefault("topics", [])
                topics.append({"name": name, "maxtries": maxtries})

            def to_dict(self):
                return self._data

        return Config()

    def test_queue_configuration_with_empty_config(self):
        config = self._get_fetcher().queue_configuration
        assert config == configuration.QueueConfiguration()
        assert config.default_maxtries == 3
        assert config.reclaim_timeout_seconds == 300
        assert config.guard_terminal_transitions is False
        assert config.raise_on_missing is False

    def test_queue_configuration_without_loader(self):
        fetcher = configuration.ConfigurationFetcher()
        assert fetcher.queue_configuration == configuration.QueueConfiguration()
        assert fetcher.maxtries_for("mail.send") == 3

    def test_queue_configuration(self):
        self._config.set(
            default_maxtries=5,
            reclaim_timeout_seconds=60,
            guard_terminal_transitions=True,
            unknown_key="ignored",
        )
        config = self._get_fetcher().queue_configuration
        assert config.default_maxtries == 5
        assert config.reclaim_timeout_seconds == 60
        assert config.guard_terminal_transitions is True
        assert config.raise_on_missing is False

    def test_maxtries_for_with_empty_config(self):
        assert self._get_fetcher().maxtries_for("mail.send") == 3

    def test_maxtries_for_default(self):
        self._config.set(default_maxtries=5)
        assert self._get_fetcher().maxtries_for("mail.send") == 5

    def test_maxtries_for(self):
        self._config.add_topic("mail.send", 10)
        fetcher = self._get_fetcher()
        assert fetcher.maxtries_for("mail.send") == 10
        assert fetcher.maxtries_for("mail.sender") == 3
        assert fetcher.maxtries_for("mailxsend") == 3

    def test_maxtries_for_with_fuzzy_name(self):
        self._config.add_topic("mail.*", 10)
        fetcher = self._get_fetcher()
        assert fetcher.maxtries_for("mail.send") == 10
        assert fetcher.maxtries_for("mail.") == 10
        assert fetcher.maxtries_for("mail.send.bulk") == 10
        assert fetcher.maxtries_for("mailbox") == 3
        assert fetcher.maxtries_for("sms.mail.send") == 3

    def test_maxtries_for_with_multiple(self):
        self._config.add_topic("mail.bulk", 1)
        self._config.add_topic("mail.*", 10)
        self._config.add_topic("*.send", 7)
        fetcher = self._get_fetcher()

        assert fetcher.maxtries_for("mail.bulk") == 1
        assert fetcher.maxtries_for("mail.send") == 10
        assert fetcher.maxtries_for("sms.send") == 7
        assert fetcher.maxtries_for("other") == 3


class ConfigurationDataLoaderTestCase(unittest.TestCase):
    def test_load(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp)
            (path / "ws_mail.yml").write_text(
                "default_maxtries: 4\n"
                "topics:\n"
                "  - name: mail.*\n"
                "    maxtries: 8\n"
            )
            loader = configuration.ConfigurationDataLoader("mail", configuration_dir=path)
            assert loader.load() == {
                "default_maxtries": 4,
                "topics": [{"name": "mail.*", "maxtries": 8}],
            }

            fetcher = configuration.ConfigurationFetcher(loader)
            assert fetcher.maxtries_for("mail.send") == 8
            assert fetcher.maxtries_for("sms.send") == 4

    def test_load_missing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            loader = configuration.ConfigurationDataLoader("mail", configuration_dir=Path(tmp))
            assert loader.load() is None
