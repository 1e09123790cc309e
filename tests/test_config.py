# tests/test_config.py

import json
import logging

import yaml

from picture_pruner.config import SystemConfig
from picture_pruner.utils.logging_config import LOGGER_NAME, log_operation, setup_logging


def test_missing_file_gives_defaults(tmp_path):
    config = SystemConfig.load(str(tmp_path / "absent.yaml"))

    assert config == SystemConfig()
    assert config.similarity.policy == "perceptual"
    assert config.similarity.hash_threshold == 10
    assert config.similarity.time_window_seconds == 45.0
    assert config.fingerprint.hash_size == 8


def test_save_and_load(tmp_path):
    path = tmp_path / "config.yaml"
    config = SystemConfig()
    config.database_path = str(tmp_path / "photos.db")
    config.similarity.policy = "heuristic"
    config.similarity.min_score = 0.8
    config.scan.recursive = True

    config.save(str(path))

    assert SystemConfig.load(str(path)) == config


def test_partial_file_keeps_other_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({'log_level': 'DEBUG', 'similarity': {'hash_threshold': 6}}))

    config = SystemConfig.load(str(path))

    assert config.log_level == "DEBUG"
    assert config.similarity.hash_threshold == 6
    assert config.similarity.min_score == 0.72
    assert config.scan == SystemConfig().scan


def test_empty_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert SystemConfig.load(str(path)) == SystemConfig()


def test_structured_log_file(tmp_path):
    logger = setup_logging("WARNING", str(tmp_path), console=False)
    try:
        log_operation(logging.getLogger(f"{LOGGER_NAME}.cli"), "sync", added=3, removed=1)
        for handler in logger.handlers:
            handler.flush()

        lines = (tmp_path / f"{LOGGER_NAME}_structured.json").read_text().splitlines()
        record = json.loads(lines[-1])

        assert record['operation'] == "sync"
        assert record['added'] == 3
        assert record['removed'] == 1
        assert record['level'] == "INFO"
        assert (tmp_path / f"{LOGGER_NAME}.log").exists()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
