"""Tests for the acquisition strategies, downloads and tool probing."""

import asyncio
import io
import zipfile

import httpx
import pytest

from ifsmcp.commands.install import display_tool_table
from ifsmcp.errors import AcquisitionFailed, ErrorKind, ProcessSpawnFailed
from ifsmcp.installer import ArchiveDownloadStrategy, GitCloneStrategy, tools
from ifsmcp.installer.acquisition import find_archive_root
from ifsmcp.installer.download import download_file
from ifsmcp.installer.tools import Tool, _extract_version
from ifsmcp.models import CommandResult


def _zip(entries: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def _serving(payload: bytes, status: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status, content=payload))


class TestArchiveDownload:
    def test_extracts_expected_root(self, tmp_path):
        payload = _zip({"repo-main/pyproject.toml": "x", "repo-main/src/a.py": "y"})
        strategy = ArchiveDownloadStrategy("https://example.test/a.zip", "repo-main", _serving(payload))
        target, workdir = tmp_path / "tree", tmp_path / "work"
        workdir.mkdir()

        asyncio.run(strategy.fetch(target, workdir))

        assert (target / "pyproject.toml").read_text() == "x"
        assert (target / "src" / "a.py").exists()

    def test_single_unexpected_root_accepted(self, tmp_path):
        payload = _zip({"other-name/pyproject.toml": "x"})
        strategy = ArchiveDownloadStrategy("https://example.test/a.zip", "repo-main", _serving(payload))
        workdir = tmp_path / "work"
        workdir.mkdir()

        asyncio.run(strategy.fetch(tmp_path / "tree", workdir))

        assert (tmp_path / "tree" / "pyproject.toml").exists()

    def test_corrupt_archive(self, tmp_path):
        strategy = ArchiveDownloadStrategy("https://example.test/a.zip", "repo-main", _serving(b"junk"))
        workdir = tmp_path / "work"
        workdir.mkdir()

        with pytest.raises(AcquisitionFailed, match="could not extract"):
            asyncio.run(strategy.fetch(tmp_path / "tree", workdir))

    def test_always_available(self):
        assert ArchiveDownloadStrategy("u", "r").is_available() is True


def test_find_archive_root_rejects_ambiguous(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    with pytest.raises(AcquisitionFailed):
        find_archive_root(tmp_path, "repo-main")


class TestGitClone:
    def test_clone_command(self, tmp_path):
        calls = []

        async def runner(argv, cwd=None, **kwargs):
            calls.append((list(argv), cwd))
            return CommandResult(0, "", "")

        strategy = GitCloneStrategy("https://example.test/repo.git", "main", runner=runner)
        asyncio.run(strategy.fetch(tmp_path / "tree", tmp_path))

        assert calls == [
            (
                ["git", "clone", "--branch", "main", "https://example.test/repo.git", str(tmp_path / "tree")],
                tmp_path,
            )
        ]

    def test_clone_failure(self, tmp_path):
        async def runner(argv, cwd=None, **kwargs):
            return CommandResult(128, "", "fatal: repository not found")

        strategy = GitCloneStrategy("https://example.test/repo.git", runner=runner)

        with pytest.raises(AcquisitionFailed, match="repository not found"):
            asyncio.run(strategy.fetch(tmp_path / "tree", tmp_path))

    def test_spawn_failure_becomes_acquisition_failure(self, tmp_path):
        async def runner(argv, cwd=None, **kwargs):
            raise ProcessSpawnFailed("git", "Permission denied")

        strategy = GitCloneStrategy("https://example.test/repo.git", runner=runner)

        with pytest.raises(AcquisitionFailed, match="Permission denied") as excinfo:
            asyncio.run(strategy.fetch(tmp_path / "tree", tmp_path))
        assert excinfo.value.strategy == "git clone"

    def test_availability_follows_git(self, mocker):
        mocker.patch.object(tools.GIT, "is_available", return_value=False)
        assert GitCloneStrategy("u").is_available() is False


class TestDownloadFile:
    def test_writes_body(self, tmp_path):
        dest = tmp_path / "sub" / "file.bin"
        asyncio.run(download_file("https://example.test/f", dest, transport=_serving(b"abc")))
        assert dest.read_bytes() == b"abc"

    def test_follows_redirects(self, tmp_path):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(302, headers={"Location": "https://example.test/new"})
            return httpx.Response(200, content=b"moved")

        dest = tmp_path / "f"
        asyncio.run(
            download_file("https://example.test/old", dest, transport=httpx.MockTransport(handler))
        )
        assert dest.read_bytes() == b"moved"

    def test_404_is_missing_artifact(self, tmp_path):
        with pytest.raises(AcquisitionFailed) as excinfo:
            asyncio.run(download_file("https://example.test/f", tmp_path / "f", transport=_serving(b"", 404)))
        assert excinfo.value.kind is ErrorKind.REMOTE_ARTIFACT_MISSING

    def test_server_error_is_network_failure(self, tmp_path):
        with pytest.raises(AcquisitionFailed) as excinfo:
            asyncio.run(download_file("https://example.test/f", tmp_path / "f", transport=_serving(b"", 500)))
        assert excinfo.value.kind is ErrorKind.NETWORK_FAILURE

    def test_transport_error_is_network_failure(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("name resolution failed", request=request)

        with pytest.raises(AcquisitionFailed) as excinfo:
            asyncio.run(
                download_file("https://example.test/f", tmp_path / "f", transport=httpx.MockTransport(handler))
            )
        assert excinfo.value.kind is ErrorKind.NETWORK_FAILURE
        assert "ConnectError" in str(excinfo.value)


    def test_unwritable_destination(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(AcquisitionFailed, match="could not write"):
            asyncio.run(
                download_file("https://example.test/f", blocker / "f", transport=_serving(b"abc"))
            )


class TestTools:
    @pytest.mark.parametrize(
        "output,expected",
        [
            ("git version 2.43.0", "2.43.0"),
            ("uv 0.5.11 (c4d0caaee 2024-12-19)", "0.5.11"),
            ("NVIDIA-SMI version  : 550.54", "550.54"),
            ("no digits", None),
        ],
    )
    def test_extract_version(self, output, expected):
        assert _extract_version(output) == expected

    def test_min_version(self):
        tool = Tool("git", "git", "hint", min_version="2.30")
        assert tool.is_version_satisfied("2.43.0") is True
        assert tool.is_version_satisfied("2.20.1") is False
        assert tool.is_version_satisfied(None) is False

    def test_probe_missing(self, mocker):
        mocker.patch("ifsmcp.installer.tools.shutil.which", return_value=None)
        status = asyncio.run(Tool("git", "git", "hint").probe())
        assert status.available is False
        assert status.status_icon == "❌"

    def test_probe_found(self, mocker):
        mocker.patch("ifsmcp.installer.tools.shutil.which", return_value="/usr/bin/uv")
        mocker.patch(
            "ifsmcp.installer.tools.run_process",
            mocker.AsyncMock(return_value=CommandResult(0, "uv 0.5.11\n", "")),
        )

        status = asyncio.run(Tool("uv", "uv", "hint").probe())

        assert status.available is True
        assert status.version == "0.5.11"
        assert status.path == "/usr/bin/uv"
        assert status.status_icon == "✅"


class TestUvMinimum:
    def test_outdated_uv_flagged(self, mocker):
        mocker.patch("ifsmcp.installer.tools.shutil.which", return_value="/usr/bin/uv")
        mocker.patch(
            "ifsmcp.installer.tools.run_process",
            mocker.AsyncMock(return_value=CommandResult(0, "uv 0.2.37\n", "")),
        )

        status = asyncio.run(tools.UV.probe())

        assert status.version == "0.2.37"
        assert status.version_satisfied is False
        assert status.status_icon == "⚠️"

    def test_current_uv_accepted(self):
        assert tools.UV.is_version_satisfied("0.5.11") is True

    def test_table_shows_requirement(self, capsys):
        display_tool_table(
            [tools.ToolStatus("uv", available=True, version="0.2.37", version_satisfied=False)]
        )

        assert f"(needs >= {tools.UV_MIN_VERSION})" in capsys.readouterr().out
