import dataclasses
import functools
import operator
import re
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import yaml

R = TypeVar("R")
I = TypeVar("I")


@dataclasses.dataclass
class QueueConfiguration:
    default_maxtries: int = 3
    reclaim_timeout_seconds: int = 300
    # only ack/fail the running tasks, otherwise the last write wins
    guard_terminal_transitions: bool = False
    raise_on_missing: bool = False


@dataclasses.dataclass
class TopicRule:
    maxtries: int


class ConfigurationDataLoader:
    def __init__(self, workspace, configuration_dir: Path | None = None) -> None:
        self._workspace = workspace
        self._configuration_dir = configuration_dir or Path.cwd()

    def load(self) -> dict | None:
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict | None:
        path = self._configuration_dir / f"ws_{self._workspace}.yml"
        if not path.exists():
            return
        with path.open() as f:
            return yaml.safe_load(f)


class ConfigurationFetcher:
    def __init__(self, loader: ConfigurationDataLoader | None = None):
        self._loader = loader
        self._queue_config = QueueConfiguration()
        self._topic_rule_factory: Callable[[str], TopicRule | None] | None = None

        config = self._loader.load() if self._loader else None
        if config:
            self._parse_config(config)

    def _parse_config(self, config: dict):
        fields = {f.name for f in dataclasses.fields(QueueConfiguration)}
        self._queue_config = QueueConfiguration(
            **{k: v for k, v in config.items() if k in fields}
        )
        if "topics" in config:
            self._parse_config_topics(config["topics"])

    def _parse_config_topics(self, config: list[dict]):
        topic_conditions: list[tuple[Callable, TopicRule]] = []
        for topic_config in config:
            condition = self._parse_topic_condition(topic_config["name"])
            rule = TopicRule(maxtries=int(topic_config["maxtries"]))
            topic_conditions.append((condition, rule))

        if topic_conditions:
            self._topic_rule_factory = functools.partial(
                self._eval_conditions, topic_conditions
            )

    def _eval_conditions(
        self, conditions: list[tuple[Callable[[I], bool], R]], data: I
    ) -> R | None:
        for condition, result in conditions:
            if condition(data):
                return result

    def _parse_topic_condition(self, name: str) -> Callable[[str], bool]:
        if "*" in name:
            pattern = ".*".join(map(re.escape, name.split("*")))
            return re.compile(pattern).fullmatch
        return functools.partial(operator.eq, name)

    @property
    def queue_configuration(self) -> QueueConfiguration:
        return self._queue_config

    def maxtries_for(self, topic: str) -> int:
        if self._topic_rule_factory:
            rule = self._topic_rule_factory(topic)
            if rule:
                return rule.maxtries
        return self._queue_config.default_maxtries
