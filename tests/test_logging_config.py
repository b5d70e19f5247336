"""Tests for structured logging and resolution context binding."""

import io
import json
import logging
import sys
import time

import pytest

from tierconf.errors import StoreUnavailableError
from tierconf.logging_config.config import LogFormat, LoggingConfig, LogLevel
from tierconf.logging_config.context import (
    ResolutionContext,
    generate_trace_id,
    get_config_key,
    get_context_dict,
    get_trace_id,
)
from tierconf.logging_config.performance import PerformanceTimer, log_performance
from tierconf.logging_config.setup import (
    ConsoleFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
)


def _record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="tierconf.test", level=level, pathname=__file__, lineno=10,
        msg=msg, args=(), exc_info=None, func="fn",
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLoggingConfig:

    def test_default_config_values(self):
        config = LoggingConfig()
        assert config.level == LogLevel.INFO
        assert config.format == LogFormat.JSON
        assert config.slow_threshold_ms == 250.0
        assert config.service_name == "tierconf"

    def test_enum_values(self):
        assert LogLevel.WARNING.value == "WARNING"
        assert LogFormat.CONSOLE.value == "console"


class TestResolutionContext:

    def test_binds_and_restores(self):
        assert get_config_key() == ""
        with ResolutionContext(config_key="maxUsers", organization_id="o1", project_id="p1") as ctx:
            assert get_config_key() == "maxUsers"
            assert get_trace_id() == ctx.trace_id
            bound = get_context_dict()
            assert bound["organization_id"] == "o1"
            assert bound["project_id"] == "p1"
        assert get_config_key() == ""
        assert get_context_dict() == {}

    def test_nested_contexts_share_trace(self):
        with ResolutionContext(config_key="outer") as outer:
            with ResolutionContext(config_key="inner") as inner:
                assert get_config_key() == "inner"
                assert inner.trace_id == outer.trace_id
            assert get_config_key() == "outer"

    def test_missing_ids_not_bound(self):
        with ResolutionContext(config_key="k"):
            assert "project_id" not in get_context_dict()

    def test_bind_extra(self):
        with ResolutionContext(config_key="k") as ctx:
            ctx.bind(batch_size=3)
            assert get_context_dict()["batch_size"] == 3

    def test_elapsed_ms(self):
        ctx = ResolutionContext()
        time.sleep(0.01)
        assert ctx.elapsed_ms >= 5

    def test_generate_trace_id(self):
        trace_id = generate_trace_id()
        assert len(trace_id) == 16
        assert trace_id != generate_trace_id()


class TestStructuredFormatter:

    def test_json_fields(self):
        output = json.loads(StructuredFormatter().format(_record()))
        assert output["message"] == "hello"
        assert output["level"] == "INFO"
        assert output["service"] == "tierconf"
        assert output["function"] == "fn"

    def test_context_and_extra_fields(self):
        formatter = StructuredFormatter(include_caller=False)
        with ResolutionContext(config_key="maxUsers", project_id="p1", organization_id="o1"):
            output = json.loads(formatter.format(_record(cache_key="tierconf:resolved:maxUsers:o1:p1")))
        assert output["config_key"] == "maxUsers"
        assert output["cache_key"] == "tierconf:resolved:maxUsers:o1:p1"
        assert "module" not in output

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        output = json.loads(StructuredFormatter().format(record))
        assert output["exception"]["type"] == "ValueError"

    def test_engine_error_code_and_details(self):
        try:
            raise StoreUnavailableError("redis down", {"backend": "redis"})
        except StoreUnavailableError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        exception = json.loads(StructuredFormatter().format(record))["exception"]
        assert exception["code"] == "store_unavailable"
        assert exception["details"] == {"backend": "redis"}


class TestConsoleFormatter:

    def test_includes_context(self):
        with ResolutionContext(config_key="theme"):
            line = ConsoleFormatter().format(_record("resolved"))
        assert "resolved" in line
        assert "config_key=theme" in line


def _tierconf_handlers():
    return [h for h in logging.getLogger().handlers if h.get_name() == "tierconf"]


class TestConfigureLogging:

    def setup_method(self):
        self._root_level = logging.getLogger().level

    def teardown_method(self):
        root = logging.getLogger()
        for handler in _tierconf_handlers():
            root.removeHandler(handler)
        root.setLevel(self._root_level)

    def test_json_handler_installed(self):
        handler = configure_logging(LoggingConfig(level=LogLevel.DEBUG))
        assert _tierconf_handlers() == [handler]
        assert isinstance(handler.formatter, StructuredFormatter)
        assert logging.getLogger().level == logging.DEBUG

    def test_reconfiguring_replaces_only_own_handler(self):
        foreign = logging.NullHandler()
        root = logging.getLogger()
        root.addHandler(foreign)
        try:
            configure_logging()
            second = configure_logging(LoggingConfig(format=LogFormat.CONSOLE))
            assert _tierconf_handlers() == [second]
            assert foreign in root.handlers
        finally:
            root.removeHandler(foreign)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TIERCONF_LOG_LEVEL", "error")
        monkeypatch.setenv("TIERCONF_LOG_FORMAT", "console")
        handler = configure_logging()
        assert logging.getLogger().level == logging.ERROR
        assert isinstance(handler.formatter, ConsoleFormatter)

    def test_backend_loggers_quieted(self):
        logging.getLogger("sqlalchemy.engine").setLevel(logging.DEBUG)
        configure_logging()
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_output_goes_to_stream(self):
        stream = io.StringIO()
        configure_logging(LoggingConfig(level=LogLevel.INFO), stream=stream)
        logging.getLogger("tierconf.test").info("configured")
        assert json.loads(stream.getvalue().splitlines()[-1])["message"] == "configured"

    def test_get_logger(self):
        assert get_logger("tierconf.x").name == "tierconf.x"

    def test_from_names(self):
        config = LoggingConfig.from_names("debug", "Console")
        assert config.level is LogLevel.DEBUG
        assert config.format is LogFormat.CONSOLE

    def test_from_names_rejects_unknown_values(self):
        with pytest.raises(ValueError):
            LoggingConfig.from_names("verbose", "json")
        with pytest.raises(ValueError):
            LoggingConfig.from_names("INFO", "xml")


class TestPerformanceLogging:

    def test_fast_call_logged_at_debug(self, caplog):
        @log_performance(threshold_ms=10_000)
        def quick():
            return 1

        with caplog.at_level(logging.DEBUG):
            assert quick() == 1
        assert any("completed" in r.message for r in caplog.records)

    def test_slow_call_logged_at_warning(self, caplog):
        @log_performance(threshold_ms=0, include_args=True)
        def slow(key):
            return key

        with caplog.at_level(logging.DEBUG):
            slow("maxUsers")
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings and "Slow operation" in warnings[0].message
        assert warnings[0].extra_data == "'maxUsers'"

    def test_exceptions_propagate(self):
        @log_performance()
        def broken():
            raise KeyError("k")

        with pytest.raises(KeyError):
            broken()

    def test_timer(self, caplog):
        with caplog.at_level(logging.DEBUG):
            with PerformanceTimer("delete_scope", threshold_ms=10_000) as timer:
                pass
        assert timer.duration_ms >= 0
        assert any("delete_scope completed" in r.message for r in caplog.records)

    def test_timer_logs_failure(self, caplog):
        with caplog.at_level(logging.DEBUG):
            with pytest.raises(RuntimeError):
                with PerformanceTimer("delete_scope"):
                    raise RuntimeError("down")
        assert any(r.levelno == logging.ERROR for r in caplog.records)
