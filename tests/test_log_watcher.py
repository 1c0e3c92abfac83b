"""Tests for the log file reader and watcher."""

import asyncio

from hearthlog.core.channels import LOADING_SCREEN_FILTER, POWER_FILTER
from hearthlog.core.log_watcher import LogFileReader, LogWatcher


def append(path, text):
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)


class TestLogFileReader:
    """Test LogFileReader offsets and truncation handling."""

    def test_existing_file_starts_at_end(self, tmp_path):
        path = tmp_path / "Power.log"
        path.write_text("D 10:00:00.0000000 GameState.DebugPrintPower() - old\n", encoding="utf-8")
        reader = LogFileReader(path, "Power")

        first = reader.read_new_lines()
        assert first.lines == []
        assert first.found is not None

        append(path, "D 10:00:01.0000000 GameState.DebugPrintPower() - new\n")
        second = reader.read_new_lines()
        assert [line.content for line in second.lines] == ["GameState.DebugPrintPower() - new"]
        assert second.lines[0].source == "Power"
        reader.close()

    def test_file_created_later_read_from_start(self, tmp_path):
        path = tmp_path / "Power.log"
        reader = LogFileReader(path, "Power")
        assert reader.read_new_lines().lines == []

        path.write_text("D 10:00:00.0000000 GameState.DebugPrintPower() - first\n", encoding="utf-8")
        result = reader.read_new_lines()
        assert [line.content for line in result.lines] == ["GameState.DebugPrintPower() - first"]
        reader.close()

    def test_partial_line_waits_for_newline(self, tmp_path):
        path = tmp_path / "Power.log"
        reader = LogFileReader(path, "Power")
        reader.read_new_lines()

        append(path, "D 10:00:00.0000000 GameState.Debug")
        assert reader.read_new_lines().lines == []

        append(path, "PrintPower() - done\n")
        assert [line.content for line in reader.read_new_lines().lines] == ["GameState.DebugPrintPower() - done"]
        reader.close()

    def test_truncation_resets_offset(self, tmp_path):
        path = tmp_path / "Power.log"
        reader = LogFileReader(path, "Power")
        reader.read_new_lines()
        append(path, "D 10:00:00.0000000 GameState.DebugPrintPower() - a long line before the restart\n")
        reader.read_new_lines()

        with open(path, "w", encoding="utf-8") as f:
            f.write("D 10:05:00.0000000 GameState.x\n")
        result = reader.read_new_lines()

        assert [line.content for line in result.lines] == ["GameState.x"]
        reader.close()

    def test_line_without_prefix_is_reported(self, tmp_path):
        path = tmp_path / "Power.log"
        reader = LogFileReader(path, "Power")
        reader.read_new_lines()

        append(path, "no timestamp here\n\nD 10:00:00.0000000 GameState.x\n")
        result = reader.read_new_lines()

        assert [line.content for line in result.lines] == ["GameState.x"]
        assert len(result.ignored) == 1
        assert "no timestamp here" in result.ignored[0]
        reader.close()

    def test_out_of_range_time_is_reported_and_reading_continues(self, tmp_path):
        path = tmp_path / "Power.log"
        reader = LogFileReader(path, "Power")
        reader.read_new_lines()

        append(path, "D 99:00:00.0000000 GameState.Bad\nD 10:00:00.0000000 GameState.Good\n")
        result = reader.read_new_lines()

        assert [line.content for line in result.lines] == ["GameState.Good"]
        assert len(result.ignored) == 1
        assert "GameState.Bad" in result.ignored[0]
        reader.close()

    def test_midnight_rollover_advances_day(self, tmp_path):
        path = tmp_path / "Power.log"
        reader = LogFileReader(path, "Power")
        reader.read_new_lines()

        append(path, "D 23:59:59.0000000 GameState.a\nD 00:00:01.0000000 GameState.b\n")
        lines = reader.read_new_lines().lines

        assert lines[1].time > lines[0].time
        assert (lines[1].time.date() - lines[0].time.date()).days == 1
        reader.close()


class TestLogWatcher:
    """Test the polling watcher."""

    def test_poll_once_merges_files_by_time(self, tmp_path):
        watcher = LogWatcher([POWER_FILTER, LOADING_SCREEN_FILTER])
        found = []
        watcher.add_log_file_found_listener(found.append)

        async def scenario():
            await watcher.start(tmp_path)
            await watcher.stop(force=True)

        asyncio.run(scenario())
        # Files that appear after the first read are read from the start
        assert watcher.poll_once() == []
        append(tmp_path / "Power.log", "D 10:00:02.0000000 GameState.b\n")
        append(tmp_path / "LoadingScreen.log", "D 10:00:01.0000000 LoadingScreen.OnSceneLoaded() - a\n")

        batch = watcher.poll_once()

        assert [line.source for line in batch] == ["LoadingScreen", "Power"]
        assert len(found) == 2

    def test_delivers_batches_until_stopped(self, tmp_path):
        batches = []
        watcher = LogWatcher([POWER_FILTER], poll_interval=0.01)
        watcher.add_new_lines_listener(batches.append)

        async def scenario():
            await watcher.start(tmp_path)
            assert watcher.running
            await asyncio.sleep(0.05)
            append(tmp_path / "Power.log", "D 10:00:00.0000000 GameState.x\n")
            for _ in range(100):
                if batches:
                    break
                await asyncio.sleep(0.01)
            return await watcher.stop()

        assert asyncio.run(scenario()) is True
        assert not watcher.running
        assert [line.content for batch in batches for line in batch] == ["GameState.x"]

    def test_listener_error_contained(self, tmp_path):
        watcher = LogWatcher([POWER_FILTER])
        calls = []

        def broken(message):
            raise RuntimeError("boom")

        watcher.add_log_line_ignored_listener(broken)
        watcher.add_log_line_ignored_listener(calls.append)

        async def scenario():
            await watcher.start(tmp_path)
            await watcher.stop(force=True)

        asyncio.run(scenario())
        watcher.poll_once()
        append(tmp_path / "Power.log", "garbage\n")
        watcher.poll_once()

        assert len(calls) == 1

    def test_stop_when_not_started(self):
        assert asyncio.run(LogWatcher().stop()) is True

    def test_keeps_polling_after_bad_timestamp(self, tmp_path):
        batches = []
        ignored = []
        watcher = LogWatcher([POWER_FILTER], poll_interval=0.01)
        watcher.add_new_lines_listener(batches.append)
        watcher.add_log_line_ignored_listener(ignored.append)

        async def scenario():
            await watcher.start(tmp_path)
            await asyncio.sleep(0.05)
            append(tmp_path / "Power.log", "D 99:00:00.0000000 GameState.Bad\nD 10:00:00.0000000 GameState.Good\n")
            for _ in range(100):
                if batches:
                    break
                await asyncio.sleep(0.01)
            alive = watcher.running
            stopped = await watcher.stop()
            return alive, stopped

        assert asyncio.run(scenario()) == (True, True)
        assert [line.content for batch in batches for line in batch] == ["GameState.Good"]
        assert len(ignored) == 1

    def test_reader_error_does_not_end_polling(self, tmp_path):
        watcher = LogWatcher([POWER_FILTER, LOADING_SCREEN_FILTER])

        async def scenario():
            await watcher.start(tmp_path)
            await watcher.stop(force=True)

        asyncio.run(scenario())
        watcher.poll_once()

        def broken():
            raise RuntimeError("boom")

        watcher.readers[0].read_new_lines = broken
        append(tmp_path / "LoadingScreen.log", "D 10:00:01.0000000 LoadingScreen.OnSceneLoaded() - a\n")

        assert [line.source for line in watcher.poll_once()] == ["LoadingScreen"]
