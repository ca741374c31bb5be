import json
import logging

import pytest

from guildcore import BotHost
from guildcore.config import Settings
from guildcore.connectors import load_memory_connectors
from guildcore.logs import logging_config
from guildcore.logs.logging_config import (
    PrettyConsoleFormatter,
    ProductionJSONFormatter,
    get_core_logger,
    get_tenant_logger,
    log_operation,
)
from guildcore.utils.log_sanitizer import sanitize_for_log, sanitize_keys_for_log


def _record(msg, **extra):
    record = logging.LogRecord("guildcore.commands.dispatcher", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_core_logger_names():
    assert get_core_logger("host").name == "guildcore.host"
    assert get_core_logger("guildcore.features.welcome").name == "guildcore.features.welcome"


def test_json_formatter_redacts_secrets():
    record = _record("connecting with token=abcdef123456 and Bearer xyz.abc", tenant_id="g1", api_key="sk-1234567890")
    payload = json.loads(ProductionJSONFormatter().format(record))

    assert "abcdef123456" not in payload["msg"]
    assert "xyz.abc" not in payload["msg"]
    assert payload["extra"]["tenant_id"] == "g1"
    assert payload["extra"]["api_key"] == "sk-1***7890"
    assert payload["emoji"] == "⚡"


def test_pretty_formatter_inlines_context():
    record = _record("Command executed", tenant_id="g1", command_name="ping")
    line = PrettyConsoleFormatter(no_color=True).format(record)
    assert "guildcore.commands.dispatcher - Command executed | tenant_id=g1 command_name=ping" in line


def test_context_logger_merges_context(caplog):
    logger = get_tenant_logger("g1", "welcome", base_logger=get_core_logger("features.welcome"), args="dropped")
    assert logger.context == {"tenant_id": "g1", "capability_key": "welcome"}

    with caplog.at_level(logging.INFO, logger="guildcore.features.welcome"):
        logger.with_context(invoker_id="u1").info("Welcome message sent", channel_id="c1")

    record = caplog.records[-1]
    assert record.tenant_id == "g1"
    assert record.capability_key == "welcome"
    assert record.invoker_id == "u1"
    assert record.channel_id == "c1"


def test_log_operation_reports_failure(caplog):
    logger = get_core_logger("host")
    with caplog.at_level(logging.DEBUG, logger="guildcore.host"):
        with pytest.raises(ValueError):
            with log_operation(logger, "host_start"):
                raise ValueError("bad config")

    failure = caplog.records[-1]
    assert failure.levelno == logging.ERROR
    assert failure.status == "error"
    assert failure.error_type == "ValueError"


@pytest.fixture
def isolated_root_logging(tmp_path, monkeypatch):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    monkeypatch.setattr(logging_config, "LOGS_DIR", tmp_path)
    logging_config.reset_logging_state()
    yield tmp_path / logging_config.MAIN_LOG_FILE_NAME
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    logging_config.reset_logging_state()


def _read_entries(path):
    for handler in logging.getLogger().handlers:
        handler.flush()
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_setup_logging_writes_json_lines(isolated_root_logging):
    logging_config.setup_logging(console_level="WARNING", as_json=True)
    logging_config.setup_logging(console_level="DEBUG", as_json=False)
    get_core_logger("host").info("hello from the host", extra={"tenant_id": "g1"})

    entries = _read_entries(isolated_root_logging)
    assert any(e["msg"] == "hello from the host" and e["extra"]["tenant_id"] == "g1" for e in entries)


@pytest.mark.asyncio
async def test_host_configures_logging_from_settings(isolated_root_logging):
    settings = Settings(
        env="production",
        log_level="WARNING",
        logs_as_json=True,
        owner_ids=(),
        enabled_features=(),
        disabled_features=(),
        allow_command_overwrite=False,
        license_file=None,
    )
    await BotHost(settings, load_memory_connectors(), configure_logging=True).start()
    get_core_logger("host").info("info is below the production file level")
    get_core_logger("host").warning("warnings reach the file")

    messages = [e["msg"] for e in _read_entries(isolated_root_logging)]
    assert "warnings reach the file" in messages
    assert "info is below the production file level" not in messages


def test_log_sanitizer():
    assert sanitize_for_log("ping\nINFO forged") == "ping INFO forged"
    assert sanitize_for_log("x" * 10, max_length=4) == "xxxx..."
    assert sanitize_for_log(None) == ""
    assert sanitize_keys_for_log({"amount": 1, "re\nason": 2}) == ["amount", "re ason"]
