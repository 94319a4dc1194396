"""Tests for logging helpers."""

import builtins
import logging

import pytest
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

from compliance_engine import logger as logger_module


class RecordingLogger:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []

    def _record(self, level: str):
        def log(event: str, **kwargs) -> None:
            self.calls.append((level, event, kwargs))

        return log

    def __getattr__(self, level: str):
        return self._record(level)


def test_build_otlp_logs_endpoint_adds_suffix() -> None:
    assert (
        logger_module._build_otlp_logs_endpoint("http://collector:4318/")
        == "http://collector:4318/v1/logs"
    )
    assert (
        logger_module._build_otlp_logs_endpoint("http://collector:4318/v1/logs")
        == "http://collector:4318/v1/logs"
    )


def test_select_renderer_uses_console_in_debug(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", True)
    assert isinstance(logger_module._select_renderer(), ConsoleRenderer)


def test_select_renderer_uses_json_in_production(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", False)
    assert isinstance(logger_module._select_renderer(), JSONRenderer)


def test_configure_otel_logging_missing_dependency_warns(monkeypatch, caplog) -> None:
    monkeypatch.setattr(
        logger_module.settings,
        "otel_exporter_otlp_endpoint",
        "http://collector:4318",
    )
    original_import = builtins.__import__

    def blocked_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name.startswith("opentelemetry"):
            raise ImportError("opentelemetry not installed")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", blocked_import)

    with caplog.at_level(logging.WARNING):
        logger_module._configure_otel_logging()

    assert "OTEL log exporter not available" in caplog.text


def test_log_external_api_rejects_sync_functions() -> None:
    with pytest.raises(TypeError):

        @logger_module.log_external_api("compliance-backend")
        def not_async() -> None:
            return None


@pytest.mark.asyncio
async def test_log_external_api_logs_success_and_failure() -> None:
    recorder = RecordingLogger()

    @logger_module.log_external_api("compliance-backend", logger=recorder)
    async def fetch(fail: bool) -> str:
        if fail:
            raise RuntimeError("boom")
        return "ok"

    assert await fetch(False) == "ok"
    with pytest.raises(RuntimeError):
        await fetch(True)

    (ok_level, _, ok_kwargs), (fail_level, _, fail_kwargs) = recorder.calls
    assert ok_level == "info"
    assert ok_kwargs["success"] is True
    assert ok_kwargs["function"] == "fetch"
    assert fail_level == "warning"
    assert fail_kwargs["error_type"] == "RuntimeError"


@pytest.mark.asyncio
async def test_async_log_timing_includes_context() -> None:
    recorder = RecordingLogger()

    async with logger_module.async_log_timing(
        "build_subject_feed", logger=recorder, subject_id="doc-1"
    ) as ctx:
        ctx["notification_count"] = 3

    level, event, kwargs = recorder.calls[0]
    assert level == "info"
    assert event == "build_subject_feed completed"
    assert kwargs["subject_id"] == "doc-1"
    assert kwargs["notification_count"] == 3
    assert "duration_ms" in kwargs


def test_log_exception_without_traceback() -> None:
    recorder = RecordingLogger()

    logger_module.log_exception(
        recorder,
        ValueError("bad"),
        "Parsing failed",
        level="warning",
        include_traceback=False,
        record_id="42",
    )

    level, event, kwargs = recorder.calls[0]
    assert (level, event) == ("warning", "Parsing failed")
    assert kwargs["error_type"] == "ValueError"
    assert kwargs["record_id"] == "42"
    assert "exc_info" not in kwargs
