"""Tests for scoped temp files."""

import asyncio

import pytest

from assetvault.lib.tempfiles import TEMP_PREFIX, temp_media_file


class TestTempMediaFile:
    @pytest.mark.asyncio
    async def test_prefilled_and_removed(self, tmp_path):
        async with temp_media_file(".bin", b"data", directory=str(tmp_path)) as path:
            assert path.read_bytes() == b"data"
            assert path.name.startswith(TEMP_PREFIX)
            assert path.suffix == ".bin"
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_removed_on_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            async with temp_media_file(directory=str(tmp_path)) as path:
                raise RuntimeError("tool crashed")
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_removed_on_cancellation(self, tmp_path):
        entered = asyncio.Event()

        async def hold():
            async with temp_media_file(directory=str(tmp_path)):
                entered.set()
                await asyncio.sleep(30)

        task = asyncio.create_task(hold())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_tolerates_tool_deleting_file(self, tmp_path):
        async with temp_media_file(directory=str(tmp_path)) as path:
            path.unlink()
