"""
Unit tests for the Plugin Management System
"""

import asyncio
import json
import logging
import pytest
from datetime import timezone
from unittest.mock import AsyncMock

from core.config import ConfigurationManager
from core.events import ServerEvent
from core.plugin_manager import BasePlugin, PluginManager, PluginMetadata, PluginStatus
from core.server import ServerState


class MockPlugin(BasePlugin):
    """Mock plugin for testing"""

    def __init__(self, name: str, config: dict, plugin_manager):
        super().__init__(name, config, plugin_manager)
        self.initialized = False
        self.started = False
        self.stopped = False
        self.cleaned_up = False
        self.handler_started = asyncio.Event()
        self.handler_cancelled = False

    async def initialize(self) -> bool:
        if self.get_config('fail_init', False):
            return False
        self.initialized = True
        return True

    async def start(self) -> bool:
        if self.get_config('fail_start', False):
            return False
        self.subscribe(ServerEvent.ROUND_ENDED, self.on_round_ended)
        self.started = True
        return True

    async def stop(self) -> bool:
        self.unsubscribe_all()
        self.stopped = True
        return True

    async def cleanup(self) -> bool:
        self.cleaned_up = True
        return await super().cleanup()

    async def on_round_ended(self, data):
        self.handler_started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.handler_cancelled = True
            raise

    def get_metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name=self.name,
            version="1.0.0",
            description="Mock plugin for testing",
            author="Test"
        )


@pytest.fixture
def config_manager(tmp_path):
    manager = ConfigurationManager(config_dir=str(tmp_path))
    manager.load_config()
    return manager


@pytest.fixture
def plugin_manager(config_manager):
    manager = PluginManager(config_manager, ServerState())
    manager.register_plugin_class("mock_plugin", MockPlugin)
    return manager


class TestPluginMetadata:

    def test_valid_metadata(self):
        metadata = PluginMetadata(name="x", version="1.0.0", description="d", author="a")
        assert metadata.default_enabled is False

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            PluginMetadata(name="", version="1.0.0", description="d", author="a")


class TestPluginLifecycle:

    @pytest.mark.asyncio
    async def test_load_uses_config_block(self, plugin_manager, config_manager):
        config_manager.config['plugins']['mock_plugin'] = {'enabled': True, 'option': 'value'}

        assert await plugin_manager.load_plugin("mock_plugin") is True

        plugin = plugin_manager.get_plugin("mock_plugin")
        assert plugin.initialized
        assert plugin.get_config('option') == 'value'
        assert plugin_manager.get_plugin_status("mock_plugin") == PluginStatus.LOADED
        assert plugin_manager.plugins["mock_plugin"].load_time.tzinfo is timezone.utc

    @pytest.mark.asyncio
    async def test_load_unregistered_plugin(self, plugin_manager):
        assert await plugin_manager.load_plugin("nope") is False

    @pytest.mark.asyncio
    async def test_failed_initialize_marks_failed(self, plugin_manager):
        assert await plugin_manager.load_plugin("mock_plugin", {'fail_init': True}) is False

        info = plugin_manager.plugins["mock_plugin"]
        assert info.status == PluginStatus.FAILED
        assert "initialize" in info.last_error

    @pytest.mark.asyncio
    async def test_start_requires_load(self, plugin_manager):
        assert await plugin_manager.start_plugin("mock_plugin") is False

    @pytest.mark.asyncio
    async def test_start_and_stop(self, plugin_manager):
        await plugin_manager.load_plugin("mock_plugin", {})

        assert await plugin_manager.start_plugin("mock_plugin") is True
        plugin = plugin_manager.get_plugin("mock_plugin")
        assert plugin.started and plugin.is_running
        assert plugin_manager.get_running_plugins() == ["mock_plugin"]

        assert await plugin_manager.stop_plugin("mock_plugin") is True
        assert plugin.stopped and plugin.cleaned_up
        assert not plugin.is_running
        assert plugin_manager.get_plugin_status("mock_plugin") == PluginStatus.STOPPED

    @pytest.mark.asyncio
    async def test_failed_start_marks_failed(self, plugin_manager):
        await plugin_manager.load_plugin("mock_plugin", {'fail_start': True})

        assert await plugin_manager.start_plugin("mock_plugin") is False
        assert plugin_manager.get_plugin_status("mock_plugin") == PluginStatus.FAILED

    @pytest.mark.asyncio
    async def test_failure_logged_as_structured_error(self, plugin_manager, caplog):
        await plugin_manager.load_plugin("mock_plugin", {'fail_start': True})

        with caplog.at_level(logging.ERROR):
            await plugin_manager.start_plugin("mock_plugin")

        structured = [json.loads(r.getMessage()) for r in caplog.records if r.getMessage().startswith("{")]
        assert structured[0]["plugin"] == "mock_plugin"
        assert structured[0]["error_type"] == "RuntimeError"
        assert structured[0]["context"] == {"phase": "start"}
        assert structured[0]["timestamp"].endswith("+00:00")

    @pytest.mark.asyncio
    async def test_stop_raising_plugin_marks_failed(self, plugin_manager):
        await plugin_manager.load_plugin("mock_plugin", {})
        await plugin_manager.start_plugin("mock_plugin")
        plugin_manager.get_plugin("mock_plugin").stop = AsyncMock(side_effect=RuntimeError("stuck"))

        assert await plugin_manager.stop_plugin("mock_plugin") is False
        assert plugin_manager.plugins["mock_plugin"].last_error == "stuck"


class TestStartAll:

    @pytest.mark.asyncio
    async def test_disabled_plugin_skipped(self, plugin_manager):
        assert await plugin_manager.start_all_plugins() is True

        assert plugin_manager.get_plugin_status("mock_plugin") == PluginStatus.DISABLED
        assert plugin_manager.get_plugin("mock_plugin") is None

    @pytest.mark.asyncio
    async def test_enabled_plugin_started_and_stopped(self, plugin_manager, config_manager):
        config_manager.config['plugins']['mock_plugin'] = {'enabled': True}

        assert await plugin_manager.start_all_plugins() is True
        assert plugin_manager.get_running_plugins() == ["mock_plugin"]

        assert await plugin_manager.stop_all_plugins() is True
        assert plugin_manager.get_running_plugins() == []

    @pytest.mark.asyncio
    async def test_failure_reported(self, plugin_manager, config_manager):
        config_manager.config['plugins']['mock_plugin'] = {'enabled': True, 'fail_start': True}

        assert await plugin_manager.start_all_plugins() is False

    def test_connector_lookup(self, config_manager):
        connector = object()
        manager = PluginManager(config_manager, ServerState(), {'discord': connector})

        assert manager.get_connector('discord') is connector
        assert manager.get_connector('slack') is None


class TestHandlerTracking:

    @pytest.mark.asyncio
    async def test_stop_cancels_in_flight_handlers(self, plugin_manager):
        await plugin_manager.load_plugin("mock_plugin", {})
        await plugin_manager.start_plugin("mock_plugin")
        plugin = plugin_manager.get_plugin("mock_plugin")
        events = plugin_manager.server.events

        events.emit(ServerEvent.ROUND_ENDED, {'winner': 'USA'})
        await asyncio.wait_for(plugin.handler_started.wait(), timeout=1)

        assert await plugin_manager.stop_plugin("mock_plugin") is True
        await events.drain()

        assert plugin.handler_cancelled
        assert plugin._tasks == set()
        assert events.listener_count(ServerEvent.ROUND_ENDED) == 0

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self, plugin_manager):
        await plugin_manager.load_plugin("mock_plugin", {})
        await plugin_manager.start_plugin("mock_plugin")
        plugin = plugin_manager.get_plugin("mock_plugin")

        plugin.subscribe(ServerEvent.ROUND_ENDED, plugin.on_round_ended)

        assert plugin_manager.server.events.listener_count(ServerEvent.ROUND_ENDED) == 1
