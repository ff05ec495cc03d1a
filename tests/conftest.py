"""
Global pytest configuration and fixtures for SquadRelay testing.
"""
import os
import tempfile
import pytest
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import Mock, AsyncMock

from core.events import EventBus
from core.server import ServerOptions, ServerState, SFTPOptions
from models.player import Player


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_csv(temp_dir):
    """Write a CSV into temp_dir with a given modification time."""
    def _write(name: str, mtime: float, content: str = "player,kills\n") -> Path:
        path = temp_dir / name
        path.write_text(content)
        os.utime(path, (mtime, mtime))
        return path
    return _write


@pytest.fixture
def server_state():
    """Provide a local-mode server with an empty roster."""
    server = ServerState(options=ServerOptions(log_reader_mode="tail"), event_bus=EventBus())
    server.set_layer("Narva AAS v1")
    return server


@pytest.fixture
def sftp_server_state():
    """Provide a server configured to read over SFTP."""
    options = ServerOptions(
        log_reader_mode="sftp",
        sftp=SFTPOptions(host="squad.example.com", port=2222, username="squad", password="secret")
    )
    return ServerState(options=options, event_bus=EventBus())


@pytest.fixture
def mock_channel():
    """Discord channel double accepting send()."""
    channel = Mock()
    channel.send = AsyncMock(return_value=None)
    return channel


@pytest.fixture
def mock_plugin_manager(server_state, mock_channel):
    """Plugin manager double exposing a server and a Discord connector."""
    connector = Mock()
    connector.fetch_channel = AsyncMock(return_value=mock_channel)

    manager = Mock()
    manager.server = server_state
    manager.connectors = {'discord': connector}
    manager.get_connector = Mock(side_effect=lambda name: manager.connectors.get(name))
    return manager


@pytest.fixture
def sample_players() -> List[Player]:
    """Provide a roster with linkable and unlinkable players."""
    return [
        Player(name="Alpha", steam_id="76561198000000001", eos_id="0002aaaaaaaaaaaaaaaaaaaaaaaaaaa1"),
        Player(name="Bravo", steam_id="76561198000000002", eos_id="0002aaaaaaaaaaaaaaaaaaaaaaaaaaa2"),
        Player(name="Charlie", steam_id="76561198000000003", eos_id=None),
    ]


@pytest.fixture
def test_config() -> Dict[str, Any]:
    """Provide test configuration."""
    return {
        "app": {"name": "SquadRelay"},
        "server": {"log_reader_mode": "tail"},
        "plugins": {
            "discord_scoreboard": {"enabled": True, "channelID": "123456789", "waitTime": 0},
            "competification_link": {"enabled": True, "apiToken": "token"}
        },
        "logging": {
            "level": "DEBUG",
            "file": "",
            "console": False
        }
    }
