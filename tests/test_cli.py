"""Tests for the command line interface."""

import pytest
from click.testing import CliRunner

from assetvault.cli import cli
from assetvault.config import get_settings


@pytest.fixture
def runner(tmp_path, monkeypatch):
    for var in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_S3_BUCKET", "ASSETVAULT_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ASSETVAULT_STORAGE__LOCAL_ROOT", str(tmp_path / "uploads"))
    get_settings.cache_clear()
    yield CliRunner()
    get_settings.cache_clear()


class TestCli:
    def test_upload(self, runner, tmp_path):
        source = tmp_path / "notes.txt"
        source.write_text("hello")

        result = runner.invoke(cli, ["upload", str(source)])

        assert result.exit_code == 0, result.output
        assert "backend:  local" in result.output
        assert "-notes.txt" in result.output
        assert list((tmp_path / "uploads").rglob("*-notes.txt"))

    def test_process_image(self, runner, tmp_path, jpeg_bytes):
        source = tmp_path / "My Photo.jpg"
        source.write_bytes(jpeg_bytes)

        result = runner.invoke(cli, ["process", str(source)])

        assert result.exit_code == 0, result.output
        assert "state:   COMPLETED" in result.output
        assert "width: 1920" in result.output
        assert "200x200" in result.output

    def test_presign_public_download(self, runner):
        result = runner.invoke(cli, ["presign", "assets/x.jpg", "--public", "--download"])

        assert result.exit_code == 0, result.output
        assert "http://localhost:3000/api/files/public/assets/x.jpg?download=1" in result.output.splitlines()
