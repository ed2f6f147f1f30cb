"""Config 模块测试。

测试 PROCLAUNCH_* 环境变量解析、配置管理和日志配置。
"""

from __future__ import annotations

import logging
import os
from unittest import mock

import pytest

from proclaunch.config import (
    LOG_FORMAT,
    Config,
    configure_logging,
    get_config,
    load_config,
    reload_config,
)

_VARS = (
    "PROCLAUNCH_TERM_TIMEOUT",
    "PROCLAUNCH_KILL_TIMEOUT",
    "PROCLAUNCH_LOG_DEBUG",
    "PROCLAUNCH_LOG_LEVEL",
)


@pytest.fixture
def clean_env():
    """移除所有 PROCLAUNCH_* 环境变量。"""
    env = {k: v for k, v in os.environ.items() if k not in _VARS}
    with mock.patch.dict(os.environ, env, clear=True):
        yield


@pytest.fixture
def package_logger():
    """测试后恢复 proclaunch logger 状态。"""
    logger = logging.getLogger("proclaunch")
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


class TestDefaults:
    """测试默认值。"""

    def test_unset_means_defaults(self, clean_env):
        """未设置环境变量时使用默认值。"""
        config = load_config()
        assert config.term_timeout == 2.0
        assert config.kill_timeout == 1.0
        assert config.log_debug is False
        assert config.log_file is None
        assert config.log_level == logging.INFO


class TestParseTimeout:
    """测试超时时间解析。"""

    def test_valid_value(self, clean_env):
        with mock.patch.dict(os.environ, {"PROCLAUNCH_TERM_TIMEOUT": "5"}):
            assert load_config().term_timeout == 5.0

    def test_clamped_low(self, clean_env):
        """小于 0.1 时限制为 0.1。"""
        with mock.patch.dict(os.environ, {"PROCLAUNCH_KILL_TIMEOUT": "0"}):
            assert load_config().kill_timeout == 0.1

    def test_clamped_high(self, clean_env):
        """大于 60 时限制为 60。"""
        with mock.patch.dict(os.environ, {"PROCLAUNCH_TERM_TIMEOUT": "1000"}):
            assert load_config().term_timeout == 60.0

    @pytest.mark.parametrize("value", ["abc", "", "1.2.3"])
    def test_invalid_falls_back(self, clean_env, value: str):
        """无效值回退到默认值。"""
        with mock.patch.dict(os.environ, {"PROCLAUNCH_TERM_TIMEOUT": value}):
            assert load_config().term_timeout == 2.0


class TestParseBool:
    """测试布尔值解析。"""

    @pytest.mark.parametrize("value", ["true", "True", "1", "yes", "on"])
    def test_truthy_values(self, clean_env, tmp_path, value: str):
        """真值。"""
        with mock.patch.dict(os.environ, {"PROCLAUNCH_LOG_DEBUG": value}), \
             mock.patch("tempfile.gettempdir", return_value=str(tmp_path)):
            config = load_config()
            assert config.log_debug is True
            assert config.log_file is not None
            assert config.log_file.startswith(str(tmp_path.resolve()))

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", ""])
    def test_falsy_values(self, clean_env, value: str):
        """假值。"""
        with mock.patch.dict(os.environ, {"PROCLAUNCH_LOG_DEBUG": value}):
            config = load_config()
            assert config.log_debug is False
            assert config.log_file is None


class TestParseLogLevel:
    """测试日志级别解析。"""

    @pytest.mark.parametrize(
        "value,expected",
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), (" error ", logging.ERROR)],
    )
    def test_known_levels(self, clean_env, value: str, expected: int):
        with mock.patch.dict(os.environ, {"PROCLAUNCH_LOG_LEVEL": value}):
            assert load_config().log_level == expected

    def test_unknown_level_is_info(self, clean_env):
        with mock.patch.dict(os.environ, {"PROCLAUNCH_LOG_LEVEL": "chatty"}):
            assert load_config().log_level == logging.INFO


class TestGlobalConfig:
    """测试全局配置缓存。"""

    def test_get_config_cached(self, clean_env):
        assert get_config() is get_config()

    def test_reload_config(self, clean_env):
        first = get_config()
        with mock.patch.dict(os.environ, {"PROCLAUNCH_KILL_TIMEOUT": "3"}):
            reloaded = reload_config()
        assert reloaded is not first
        assert reloaded.kill_timeout == 3.0
        assert get_config() is reloaded

    def test_repr(self):
        text = repr(Config())
        assert "term_timeout=2.0" in text
        assert "log_level=INFO" in text


class TestConfigureLogging:
    """测试日志配置。"""

    def test_stderr_handler(self, package_logger):
        handler = configure_logging(Config(log_level=logging.WARNING))

        assert isinstance(handler, logging.StreamHandler)
        assert handler in package_logger.handlers
        assert package_logger.level == logging.WARNING
        assert handler.formatter._fmt == LOG_FORMAT

    def test_file_handler_in_debug_mode(self, package_logger, tmp_path):
        log_file = tmp_path / "debug.log"
        handler = configure_logging(Config(log_debug=True, log_file=str(log_file)))

        assert isinstance(handler, logging.FileHandler)
        assert package_logger.level == logging.DEBUG

        logging.getLogger("proclaunch.command").debug("materialized")
        handler.flush()
        assert "materialized" in log_file.read_text(encoding="utf-8")

    def test_root_logger_untouched(self, package_logger):
        root_handlers = list(logging.getLogger().handlers)
        configure_logging(Config())
        assert logging.getLogger().handlers == root_handlers
