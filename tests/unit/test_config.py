"""
Unit tests for configuration loading and validation
"""

import pytest
import yaml

from core.config import ConfigurationError, ConfigurationManager


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SQUADRELAY_LOG_READER_MODE", "SQUADRELAY_SFTP_HOST", "SQUADRELAY_SFTP_PORT",
                 "SQUADRELAY_ENABLED_PLUGINS", "SQUADRELAY_COMPETIFICATION_TOKEN",
                 "SQUADRELAY_SCOREBOARD_CHANNEL_ID", "SQUADRELAY_LOG_LEVEL",
                 "SQUADRELAY_SFTP_PASSWORD", "SQUADRELAY_DISCORD_TOKEN"):
        monkeypatch.delenv(name, raising=False)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))


class TestConfigurationLoading:

    def test_defaults(self, tmp_path):
        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.get('server.log_reader_mode') == 'tail'
        assert manager.get_plugin_config('discord_scoreboard')['waitTime'] == 5000
        assert manager.get_plugin_config('competification_link')['apiEndpoint'] == \
            'https://squad.competification.com/api-squad/eoslink'
        assert manager.is_plugin_enabled('discord_scoreboard') is False

    def test_local_file_overrides_default_file(self, tmp_path):
        write_yaml(tmp_path / "default.yaml", {'plugins': {'discord_scoreboard': {'waitTime': 1000}}})
        write_yaml(tmp_path / "config.yaml", {'plugins': {'discord_scoreboard': {'waitTime': 2000,
                                                                                'enabled': True}}})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        options = manager.get_plugin_config('discord_scoreboard')
        assert options['waitTime'] == 2000
        assert options['scoreboardPath'] == '/SquadGame/Saved/OSI_Scoreboards/'
        assert manager.is_plugin_enabled('discord_scoreboard') is True

    def test_environment_overrides_files(self, tmp_path, monkeypatch):
        write_yaml(tmp_path / "config.yaml", {'plugins': {'competification_link': {'apiToken': 'file'}}})
        monkeypatch.setenv("SQUADRELAY_COMPETIFICATION_TOKEN", "12345")
        monkeypatch.setenv("SQUADRELAY_SFTP_PORT", "2222")

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.get('plugins.competification_link.apiToken') == '12345'
        assert manager.get('server.sftp.port') == 2222

    def test_log_level_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SQUADRELAY_LOG_LEVEL", "DEBUG")

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.get('logging.level') == 'DEBUG'

    @pytest.mark.parametrize("env_var,key", [
        ("SQUADRELAY_SFTP_PASSWORD", "server.sftp.password"),
        ("SQUADRELAY_COMPETIFICATION_TOKEN", "plugins.competification_link.apiToken"),
        ("SQUADRELAY_DISCORD_TOKEN", "connectors.discord.token"),
    ])
    @pytest.mark.parametrize("value", ["true", "False", "2024"])
    def test_secrets_stay_strings(self, tmp_path, monkeypatch, env_var, key, value):
        monkeypatch.setenv(env_var, value)

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.get(key) == value

    def test_enabled_plugins_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SQUADRELAY_ENABLED_PLUGINS", "competification_link, discord_scoreboard")

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.get_enabled_plugins() == ['competification_link', 'discord_scoreboard']
        assert manager.is_plugin_enabled('competification_link') is True

    def test_disabled_list_wins(self, tmp_path):
        write_yaml(tmp_path / "config.yaml", {'plugins': {
            'enabled_plugins': ['discord_scoreboard'],
            'disabled_plugins': ['discord_scoreboard']
        }})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.is_plugin_enabled('discord_scoreboard') is False

    def test_unreadable_file_skipped(self, tmp_path):
        (tmp_path / "config.yaml").write_text("plugins: [unclosed")

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.get('server.log_reader_mode') == 'tail'


class TestConfigurationValidation:

    def test_invalid_reader_mode(self, tmp_path):
        write_yaml(tmp_path / "config.yaml", {'server': {'log_reader_mode': 'ftp'}})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        with pytest.raises(ConfigurationError, match="log reader mode"):
            manager.load_config()

    def test_sftp_mode_requires_host(self, tmp_path):
        write_yaml(tmp_path / "config.yaml", {'server': {'log_reader_mode': 'sftp'}})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        with pytest.raises(ConfigurationError, match="sftp.host"):
            manager.load_config()

    def test_invalid_sftp_port(self, tmp_path):
        write_yaml(tmp_path / "config.yaml", {'server': {'sftp': {'port': 70000}}})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        with pytest.raises(ConfigurationError, match="SFTP port"):
            manager.load_config()

    def test_sftp_server_options(self, tmp_path):
        write_yaml(tmp_path / "config.yaml", {'server': {
            'log_reader_mode': 'sftp',
            'sftp': {'host': 'squad.example.com', 'username': 'squad', 'password': 'pw'}
        }})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        options = manager.get_server_options()
        assert options['sftp']['host'] == 'squad.example.com'
        assert options['sftp']['port'] == 22


    @pytest.mark.parametrize("logging_section", [
        {'level': 'VERBOSE'},
        {'console_level': 'LOUD'},
    ])
    def test_invalid_log_level(self, tmp_path, logging_section):
        write_yaml(tmp_path / "config.yaml", {'logging': logging_section})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        with pytest.raises(ConfigurationError, match="Invalid log level"):
            manager.load_config()

    def test_lowercase_log_level_accepted(self, tmp_path):
        write_yaml(tmp_path / "config.yaml", {'logging': {'level': 'debug'}})

        manager = ConfigurationManager(config_dir=str(tmp_path))
        manager.load_config()

        assert manager.get('logging.level') == 'debug'
