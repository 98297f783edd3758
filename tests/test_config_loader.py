"""Tests for config loader module."""

import pytest

from nc_backup.config.loader import (
    ConfigError,
    find_config_file,
    generate_example_config,
    load_config,
)


class TestFindConfigFile:
    """Tests for find_config_file function."""

    def test_explicit_path_exists(self, config_file):
        """Test finding explicitly specified config file."""
        result = find_config_file(str(config_file))
        assert result == config_file

    def test_explicit_path_not_exists(self, tmp_path):
        """Test error when explicit path doesn't exist."""
        with pytest.raises(ConfigError, match="not found"):
            find_config_file(str(tmp_path / "nonexistent.toml"))

    def test_search_paths(self, tmp_path, monkeypatch, sample_config_toml):
        """Test the first existing search path wins."""
        user_config = tmp_path / "user.toml"
        system_config = tmp_path / "system.toml"
        system_config.write_text(sample_config_toml)
        monkeypatch.setattr(
            "nc_backup.config.loader.CONFIG_PATHS", [user_config, system_config]
        )

        assert find_config_file(None) == system_config

        user_config.write_text(sample_config_toml)
        assert find_config_file(None) == user_config

    def test_no_config_found(self, tmp_path, monkeypatch):
        """Test returning None when no config is found."""
        monkeypatch.setattr(
            "nc_backup.config.loader.CONFIG_PATHS", [tmp_path / "missing.toml"]
        )
        assert find_config_file(None) is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_valid_config(self, config_file):
        """Test loading a valid configuration file."""
        config, warnings = load_config(config_file)

        assert config.global_config.document_root == "/var/www/nextcloud"
        assert config.global_config.php == "php8.2"
        assert config.global_config.backup_root == "/var/backups/nextcloud"
        assert config.global_config.occ_timeout == 30.0
        assert config.global_config.admin == "root"
        assert warnings == []

    def test_load_mariadb(self, config_file):
        config, _ = load_config(config_file)

        assert config.mariadb.defaults_file == "/etc/nc-backup/my.cnf"
        assert config.mariadb.database == "nextcloud"
        assert config.mariadb.user == "nc"
        assert config.mariadb.timeout == 600.0
        assert config.mariadb.extra_args == ["--opt", "--single-transaction"]

    def test_load_snapper(self, config_file):
        config, _ = load_config(config_file)

        assert config.snapper.config_name == "nextcloud-data"
        assert config.snapper.cleanup_algorithm == "timeline"
        assert config.snapper.timeout == 120.0

    def test_load_with_retention(self, config_file):
        """Test "all" and negative values keep everything."""
        config, _ = load_config(config_file)

        assert config.retention.daily == 7
        assert config.retention.weekly == 4
        assert config.retention.monthly is None
        assert config.retention.quarterly == 0
        assert config.retention.yearly is None

    def test_load_minimal_config(self, minimal_config_file):
        """Test defaults apply to omitted sections."""
        config, warnings = load_config(minimal_config_file)

        assert config.global_config.document_root == "/srv/nextcloud"
        assert config.mariadb.command == "mariadb-dump"
        assert config.snapper.cleanup_algorithm == "number"
        assert config.config_copy.mask_secrets is True
        assert (config.retention.daily, config.retention.monthly, config.retention.yearly) == (10, 10, 10)
        assert any("defaults_file" in w for w in warnings)

    def test_load_nonexistent_file(self, tmp_path):
        """Test error when loading nonexistent file."""
        with pytest.raises(ConfigError, match="Cannot read"):
            load_config(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml(self, tmp_config_dir):
        """Test error on invalid TOML syntax."""
        config_path = tmp_config_dir / "invalid.toml"
        config_path.write_text("this is not valid toml [[[")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(config_path)

    @pytest.mark.parametrize(
        "content, match",
        [
            ('[snapper]\ncleanup_algorithm = "hourly"', "cleanup_algorithm"),
            ("[mariadb]\ntimeout = 0", "positive"),
            ("[global]\nocc_timeout = -5", "positive"),
            ('[retention]\ndaily = "ten"', "retention"),
            ('[mariadb]\nextra_args = "--opt"', "extra_args"),
            ("[config]\ntimeout = 0", "positive"),
            ("global = 1", "\\[global\\] must be a table"),
            ('snapper = "nextcloud"', "\\[snapper\\] must be a table"),
        ],
    )
    def test_invalid_values(self, tmp_config_dir, content, match):
        config_path = tmp_config_dir / "bad.toml"
        config_path.write_text(content)

        with pytest.raises(ConfigError, match=match):
            load_config(config_path)

    def test_config_copy_timeout(self, tmp_config_dir):
        config_path = tmp_config_dir / "c.toml"
        config_path.write_text("[config]\ntimeout = 15\nmask_secrets = false")

        config, _ = load_config(config_path)
        assert config.config_copy.timeout == 15.0
        assert config.config_copy.mask_secrets is False

        config.override_timeouts(30)
        assert config.config_copy.timeout == 30

    def test_cleanup_none(self, tmp_config_dir):
        config_path = tmp_config_dir / "c.toml"
        config_path.write_text('[snapper]\ncleanup_algorithm = "none"')

        config, _ = load_config(config_path)
        assert config.snapper.cleanup_algorithm is None

    def test_example_config_loads(self, tmp_config_dir):
        """Test the generated example is a valid configuration."""
        config_path = tmp_config_dir / "example.toml"
        config_path.write_text(generate_example_config())

        config, _ = load_config(config_path)
        assert config.global_config.backup_root == "/var/backups/nextcloud"


class TestConfigWarnings:
    """Tests for configuration warnings."""

    def test_relative_paths(self, tmp_config_dir):
        config_path = tmp_config_dir / "rel.toml"
        config_path.write_text('[global]\ndocument_root = "nextcloud"\nbackup_root = "backups"')

        _, warnings = load_config(config_path)
        assert any("document_root" in w and "relative" in w for w in warnings)
        assert any("backup_root" in w and "relative" in w for w in warnings)

    def test_retention_keeps_nothing(self, tmp_config_dir):
        config_path = tmp_config_dir / "ret.toml"
        config_path.write_text(
            "[retention]\ndaily = 0\nweekly = 0\nmonthly = 0\nquarterly = 0\nyearly = 0"
        )

        _, warnings = load_config(config_path)
        assert any("Retention" in w for w in warnings)

    def test_notify_without_admin(self, tmp_config_dir):
        config_path = tmp_config_dir / "n.toml"
        config_path.write_text('[global]\nnotify = true\nadmin = ""')

        _, warnings = load_config(config_path)
        assert any("admin" in w for w in warnings)
