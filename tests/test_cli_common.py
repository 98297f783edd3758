"""Tests for CLI common utilities."""

import argparse
from pathlib import Path

import pytest

from nc_backup.cli.common import (
    add_backup_root_args,
    add_verbosity_args,
    backend_list,
    get_log_level,
    load_cli_config,
    positive_int,
    resolve_backup_root,
)
from nc_backup.config import Config, ConfigError


class TestAddVerbosityArgs:
    """Tests for add_verbosity_args function."""

    def test_adds_verbose(self):
        """Test that --verbose is added."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["--verbose"])
        assert args.verbose is True

    def test_adds_quiet(self):
        """Test that --quiet is added."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["--quiet"])
        assert args.quiet is True

    def test_adds_debug(self):
        """Test that --debug is added."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["--debug"])
        assert args.debug is True

    def test_short_verbose(self):
        """Test that -v works for verbose."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["-v"])
        assert args.verbose is True

    def test_short_quiet(self):
        """Test that -q works for quiet."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["-q"])
        assert args.quiet is True

    def test_defaults_are_false(self):
        """Test that defaults are False."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args([])
        assert args.verbose is False
        assert args.quiet is False
        assert args.debug is False


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_debug_flag(self):
        """Test that debug flag returns DEBUG."""
        args = argparse.Namespace(debug=True, quiet=False, verbose=False)
        assert get_log_level(args) == "DEBUG"

    def test_quiet_flag(self):
        """Test that quiet flag returns WARNING."""
        args = argparse.Namespace(debug=False, quiet=True, verbose=False)
        assert get_log_level(args) == "WARNING"

    def test_verbose_flag(self):
        """Test that verbose flag returns DEBUG."""
        args = argparse.Namespace(debug=False, quiet=False, verbose=True)
        assert get_log_level(args) == "DEBUG"

    def test_no_flags(self):
        """Test that no flags returns INFO."""
        args = argparse.Namespace(debug=False, quiet=False, verbose=False)
        assert get_log_level(args) == "INFO"

    def test_debug_takes_precedence(self):
        """Test that debug takes precedence over other flags."""
        args = argparse.Namespace(debug=True, quiet=True, verbose=True)
        assert get_log_level(args) == "DEBUG"

    def test_missing_attributes(self):
        """Test handling of missing attributes."""
        args = argparse.Namespace()
        # Should default to INFO when attributes are missing
        assert get_log_level(args) == "INFO"

    def test_partial_attributes(self):
        """Test handling of partial attributes."""
        args = argparse.Namespace(debug=True)
        assert get_log_level(args) == "DEBUG"

        args = argparse.Namespace(quiet=True)
        assert get_log_level(args) == "WARNING"


class TestArgumentTypes:
    """Tests for the custom argparse types."""

    def test_positive_int(self):
        assert positive_int("5") == 5

    @pytest.mark.parametrize("value", ["0", "-1", "ten"])
    def test_positive_int_rejected(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            positive_int(value)

    def test_backend_list(self):
        assert backend_list("snapper,maria-db") == ["snapper", "maria-db"]

    def test_backend_list_unknown(self):
        with pytest.raises(argparse.ArgumentTypeError, match=r"unknown backend\(s\) mysql"):
            backend_list("config,mysql")

    def test_backend_list_empty(self):
        with pytest.raises(argparse.ArgumentTypeError, match="no backend"):
            backend_list(" , ")


class TestBackupRootArgs:
    """Tests for backup root arguments and their resolution."""

    def parse(self, argv):
        parser = argparse.ArgumentParser()
        add_backup_root_args(parser)
        return parser.parse_args(argv)

    def test_positional(self):
        args = self.parse(["/var/backups/nc"])
        assert resolve_backup_root(args, Config()) == Path("/var/backups/nc")

    def test_option(self):
        args = self.parse(["-r", "/mnt/nc"])
        assert resolve_backup_root(args, Config()) == Path("/mnt/nc")

    def test_positional_wins(self):
        args = self.parse(["/a", "--backup-root", "/b"])
        assert resolve_backup_root(args, Config()) == Path("/a")

    def test_falls_back_to_config(self):
        config = Config()
        config.global_config.backup_root = "/srv/backups"
        assert resolve_backup_root(self.parse([]), config) == Path("/srv/backups")

    def test_missing(self):
        with pytest.raises(ConfigError, match="no backup root"):
            resolve_backup_root(self.parse([]), Config())


class TestLoadCliConfig:
    """Tests for load_cli_config."""

    def test_explicit_config(self, config_file):
        args = argparse.Namespace(config=str(config_file), document_root=None)
        config = load_cli_config(args)
        assert config.global_config.php == "php8.2"

    def test_document_root_override(self, config_file):
        args = argparse.Namespace(config=str(config_file), document_root="/opt/nextcloud")
        config = load_cli_config(args)
        assert config.global_config.document_root == "/opt/nextcloud"

    def test_missing_explicit_config(self, tmp_path):
        args = argparse.Namespace(config=str(tmp_path / "none.toml"))
        with pytest.raises(ConfigError, match="not found"):
            load_cli_config(args)

    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.setattr("nc_backup.cli.common.find_config_file", lambda path: None)
        config = load_cli_config(argparse.Namespace())
        assert config == Config()
