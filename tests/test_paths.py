"""Tests for filesystem locations."""

from pathlib import Path

import pytest

from ifsmcp import paths


class TestDataDir:
    def test_windows(self, monkeypatch, tmp_path):
        monkeypatch.setattr(paths.sys, "platform", "win32")
        monkeypatch.setenv("APPDATA", str(tmp_path))
        assert paths.get_data_dir() == tmp_path

    def test_macos(self, monkeypatch):
        monkeypatch.setattr(paths.sys, "platform", "darwin")
        assert paths.get_data_dir() == Path.home() / "Library" / "Application Support"

    def test_linux_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setattr(paths.sys, "platform", "linux")
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert paths.get_data_dir() == tmp_path

    def test_linux_default(self, monkeypatch):
        monkeypatch.setattr(paths.sys, "platform", "linux")
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        assert paths.get_data_dir() == Path.home() / ".local" / "share"


def test_default_install_root(monkeypatch, tmp_path):
    monkeypatch.delenv("IFSMCP_INSTALL_ROOT", raising=False)
    monkeypatch.setattr(paths, "get_data_dir", lambda: tmp_path)
    assert paths.get_install_root() == tmp_path / "ifs_cloud_mcp_server" / "server"


def test_data_root_override(monkeypatch, tmp_path):
    monkeypatch.setenv("IFSMCP_DATA_ROOT", str(tmp_path))
    assert paths.get_indexes_dir() == tmp_path / "indexes"


class TestDiscoverLocalVersions:
    def test_non_empty_dirs_only(self, tmp_path):
        for name in ("25.1.0", "24.2.0", "latest", "empty"):
            (tmp_path / name).mkdir()
        for name in ("25.1.0", "24.2.0", "latest"):
            (tmp_path / name / "index.bin").write_text("x")
        (tmp_path / "notes.txt").write_text("x")

        assert paths.discover_local_versions(tmp_path) == ["24.2.0", "25.1.0"]

    def test_missing_dir(self, tmp_path):
        assert paths.discover_local_versions(tmp_path / "absent") == []


@pytest.mark.parametrize("env", ["IFSMCP_CONFIG"])
def test_config_path_env(monkeypatch, tmp_path, env):
    monkeypatch.setenv(env, str(tmp_path / "s.yaml"))
    assert paths.get_config_path() == tmp_path / "s.yaml"
