"""
Тесты structured logging (core/logging.py, core/context.py).
"""

import io
import json
import logging

import pytest

from seiso_aws_sync.core.context import RunContext, get_current_context, set_current_context
from seiso_aws_sync.core.exceptions import ConsistencyError
from seiso_aws_sync.core.logging import (
    HumanFormatter,
    JSONFormatter,
    LogConfig,
    RotationType,
    get_logger,
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture
def restore_root_logger():
    """Возвращает handlers root логгера после теста."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    set_current_context(None)


def _record(message="Rotation status обновлён", **extra):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Тесты JSONFormatter и HumanFormatter."""

    def test_json_contains_extra(self):
        output = JSONFormatter().format(_record(instance="i-0abc", run_id="run-1"))
        data = json.loads(output)

        assert data["level"] == "INFO"
        assert data["message"] == "Rotation status обновлён"
        assert data["instance"] == "i-0abc"
        assert data["run_id"] == "run-1"
        assert "lineno" not in data

    def test_human_format(self):
        output = HumanFormatter().format(_record(instance="i-0abc", run_id="run-1"))
        assert "[run-1] Rotation status обновлён" in output
        assert "(instance=i-0abc)" in output


class TestStructuredLogger:
    """Тесты StructuredLogger."""

    def test_extra_and_bind(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(json_format=True, level=logging.DEBUG, stream=stream)

        log = get_logger("seiso_aws_sync.test").bind(queue="q-1")
        log.info("Сообщение", instance="i-0abc")

        data = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert data["queue"] == "q-1"
        assert data["instance"] == "i-0abc"

    def test_run_id_from_context(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(json_format=True, level=logging.INFO, stream=stream)
        ctx = RunContext.create(triggered_by="test", use_timestamp_id=False)
        set_current_context(ctx)

        get_logger("seiso_aws_sync.test").info("Запуск")

        data = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert data["run_id"] == ctx.run_id
        assert get_current_context() is ctx

    def test_get_logger_cached(self):
        assert get_logger("a.b") is get_logger("a.b")


class TestLogConfig:
    """Тесты LogConfig и setup_logging_from_config."""

    def test_from_dict(self):
        config = LogConfig.from_dict({"level": "debug", "rotation": "time", "file_path": "x.log"})
        assert config.level == logging.DEBUG
        assert config.rotation == RotationType.TIME
        assert config.file_path == "x.log"

    def test_file_handler_uses_json(self, tmp_path, restore_root_logger):
        """Файл пишется в JSON, консоль остаётся human-readable."""
        log_file = tmp_path / "logs" / "sync.log"
        setup_logging_from_config(LogConfig(json_format=True, file_path=str(log_file)))

        get_logger("seiso_aws_sync.test").info("В файл", node="web-1")
        for handler in logging.getLogger().handlers:
            handler.flush()

        data = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert data["node"] == "web-1"
        formatters = {type(h.formatter) for h in logging.getLogger().handlers}
        assert formatters == {HumanFormatter, JSONFormatter}

    def test_exception_serialized(self, restore_root_logger):
        """SeisoSyncError в JSON записи раскладывается через to_dict()."""
        stream = io.StringIO()
        setup_logging(json_format=True, stream=stream)

        try:
            raise ConsistencyError("Не найден node", resource="nodes", key="i-0abc", matches=0)
        except ConsistencyError:
            get_logger("seiso_aws_sync.test").exception("Ошибка rotation")

        data = json.loads(stream.getvalue().strip().splitlines()[0])
        assert data["error"]["error_type"] == "ConsistencyError"
        assert "Traceback" in data["exception"]


class TestRunContext:
    """Тесты RunContext."""

    def test_timestamp_id(self):
        ctx = RunContext.create(triggered_by="cli")
        assert ctx.run_id == ctx.started_at.strftime("%Y-%m-%dT%H-%M-%S")
        assert ctx.to_dict()["triggered_by"] == "cli"

    def test_short_uuid(self):
        assert len(RunContext.create(use_timestamp_id=False).run_id) == 8
