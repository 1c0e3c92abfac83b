"""Tests for the dispatch loop."""

import copy

from hearthlog.core.channels import ChannelClassifier, ChannelFilter
from hearthlog.core.dispatch import LogDispatcher
from hearthlog.core.domain.game_state import GameSession
from hearthlog.core.domain.log_lines import Channel
from hearthlog.core.events import EventType
from hearthlog.core.handlers import ChannelHandlers, LineHandler

from conftest import make_raw


class RecordingHandler(LineHandler):
    """Appends (name, content) to a shared call log."""

    def __init__(self, name, calls):
        self.name = name
        self.calls = calls

    def handle(self, line, state):
        self.calls.append((self.name, line.content))


class RecordingChoices:
    name = "choices"

    def __init__(self, calls):
        self.calls = calls

    def handle(self, lines, state):
        self.calls.append(("choices", [line.content for line in lines]))


class FailingHandler(LineHandler):
    name = "failing"

    def handle(self, line, state):
        raise RuntimeError("handler bug")


def power_batch():
    return [
        make_raw("PowerTaskList.DebugPrintPower() - CREATE_GAME", 1, source="Power"),
        make_raw("PowerTaskList.DebugPrintPower() -     TAG_CHANGE Entity=GameEntity tag=TURN value=1", 2, source="Power"),
        make_raw("GameState.DebugPrintGame() - GameType=GT_RANKED", 3, source="Power"),
        make_raw("LoadingScreen.OnSceneLoaded() - prevMode=HUB currMode=GAMEPLAY", 4, source="LoadingScreen"),
        make_raw("PowerTaskList.DebugPrintPower() -     TAG_CHANGE Entity=GameEntity tag=TURN value=2", 5, source="Power"),
        make_raw("DraftManager.OnChosen(): hero=HERO_08", 6, source="Arena"),
        make_raw("PowerTaskList.DebugPrintPower() -     TAG_CHANGE Entity=GameEntity tag=TURN value=3", 7, source="Power"),
    ]


def make_dispatcher(event_bus, monitor, **kwargs):
    dispatcher = LogDispatcher(event_bus=event_bus, monitor=monitor, **kwargs)
    dispatcher.attach(GameSession())
    return dispatcher


class TestDispatchOrdering:
    """Test the classify / buffer / route sequence."""

    def test_choice_lines_flushed_before_game_info(self, event_bus, monitor):
        """Two choice lines reach the choices handler as one unit before DebugPrintGame is handled."""
        calls = []
        classifier = ChannelClassifier([ChannelFilter(Channel.POWER, starts_with=("GameState.",))])
        handlers = ChannelHandlers(
            choices=RecordingChoices(calls),
            game_info=RecordingHandler("game_info", calls),
        )
        dispatcher = make_dispatcher(event_bus, monitor, classifier=classifier, handlers=handlers)

        x = make_raw("GameState.DebugPrintEntityChoices X", 1)
        y = make_raw("GameState.DebugPrintEntityChoices Y", 2)
        z = make_raw("GameState.DebugPrintGame Z", 3)
        processed = dispatcher.process_batch([x, y, z])

        assert processed == 3
        assert calls == [
            ("choices", ["GameState.DebugPrintEntityChoices X", "GameState.DebugPrintEntityChoices Y"]),
            ("game_info", "GameState.DebugPrintGame Z"),
        ]
        assert dispatcher.session.clock.time == z.time
        assert dispatcher.session.power_log == [x.line, y.line, z.line]

    def test_choice_buffer_spans_batches(self, event_bus, monitor):
        calls = []
        handlers = ChannelHandlers(choices=RecordingChoices(calls))
        dispatcher = make_dispatcher(event_bus, monitor, handlers=handlers)

        dispatcher.process_batch([make_raw("GameState.DebugPrintEntityChoices() - a", 1, source="Power")])
        assert calls == []
        dispatcher.process_batch([make_raw("PowerTaskList.DebugPrintPower() - BLOCK_END", 2, source="Power")])
        assert calls == [("choices", ["GameState.DebugPrintEntityChoices() - a"])]

    def test_routes_by_channel(self, event_bus, monitor, recorder):
        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.process_batch(power_batch())
        session = dispatcher.session

        assert session.power.games_created == 1
        assert session.power.current_turn == 3
        assert session.game_info.game_type == "GT_RANKED"
        assert session.scene.current_mode == "GAMEPLAY"
        assert session.arena.hero == "HERO_08"
        assert len(recorder.of_type(EventType.POWER_LOG_LINE)) == 4
        assert len(recorder.of_type(EventType.ARENA_LOG_LINE)) == 1


class TestIgnoredLines:
    """Test classification misses."""

    def test_unmatched_line_reported_once(self, event_bus, monitor):
        """Exactly one diagnostic, nothing else changes."""
        ignored = []
        dispatcher = make_dispatcher(event_bus, monitor, on_line_ignored=ignored.append)
        dispatcher.process_batch(power_batch()[:2])
        before = copy.deepcopy(dispatcher.session)

        dispatcher.process_batch([make_raw("Nothing registered matches this", 30)])

        assert len(ignored) == 1
        assert dispatcher.session == before

    def test_default_sink_emits_event(self, event_bus, monitor, recorder):
        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.process_batch([make_raw("GameState.DebugPrintGame() - x", 1, source="LoadingScreen")])

        assert len(recorder.of_type(EventType.LOG_LINE_IGNORED)) == 1


class TestStop:
    """Test the cooperative stop flag."""

    def test_stop_mid_batch_equals_truncated_batch(self, event_bus, monitor):
        """Stopping after line k leaves the same state as processing only k lines."""
        batch = power_batch()
        stop_after = 4

        stopped = make_dispatcher(event_bus, monitor)
        seen = []

        class StopAfter(LineHandler):
            name = "stopper"

            def __init__(self, inner):
                self.inner = inner

            def handle(self, line, state):
                self.inner.handle(line, state)
                seen.append(line)
                if len(seen) == stop_after:
                    stopped.request_stop()

        # Count lines at every handler that a line can reach in this batch
        handlers = stopped.handlers
        handlers.power = StopAfter(handlers.power)
        handlers.game_info = StopAfter(handlers.game_info)
        handlers.loading_screen = StopAfter(handlers.loading_screen)
        handlers.arena = StopAfter(handlers.arena)

        processed = stopped.process_batch(batch)

        truncated = make_dispatcher(event_bus, monitor)
        truncated.process_batch(batch[:stop_after])

        assert processed == stop_after
        assert stopped.session == truncated.session
        assert stopped.stop_requested

    def test_stop_before_batch_processes_nothing(self, event_bus, monitor):
        hooks = []
        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.add_export_hook(hooks.append)
        dispatcher.request_stop()

        assert dispatcher.process_batch(power_batch()) == 0
        assert dispatcher.session == GameSession()
        assert hooks == []

    def test_attach_clears_stop(self, event_bus, monitor):
        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.request_stop()
        dispatcher.attach(GameSession())
        assert not dispatcher.stop_requested


class TestRobustness:
    """Test failure containment and idempotence."""

    def test_handler_exception_does_not_abort_batch(self, event_bus, monitor):
        handlers = ChannelHandlers(arena=FailingHandler())
        dispatcher = make_dispatcher(event_bus, monitor, handlers=handlers)

        processed = dispatcher.process_batch(power_batch())

        assert processed == len(power_batch())
        assert dispatcher.session.power.current_turn == 3

    def test_replay_into_fresh_session_is_identical(self, event_bus, monitor):
        first = make_dispatcher(event_bus, monitor)
        first.process_batch(power_batch())

        second = make_dispatcher(event_bus, monitor)
        second.process_batch(power_batch())

        assert first.session == second.session

    def test_no_session_drops_batch(self, event_bus, monitor):
        dispatcher = LogDispatcher(event_bus=event_bus, monitor=monitor)
        assert dispatcher.process_batch(power_batch()) == 0


class TestExportHooks:
    """Test post-batch hooks."""

    def test_hook_runs_once_per_batch(self, event_bus, monitor):
        sessions = []
        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.add_export_hook(sessions.append)

        dispatcher.process_batch(power_batch())
        dispatcher.process_batch([])

        assert sessions == [dispatcher.session]

    def test_failing_hook_contained(self, event_bus, monitor):
        calls = []

        def broken(session):
            raise RuntimeError("export failed")

        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.add_export_hook(broken)
        dispatcher.add_export_hook(lambda session: calls.append(session))
        dispatcher.process_batch(power_batch())

        assert len(calls) == 1

    def test_removed_hook_not_called(self, event_bus, monitor):
        calls = []
        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.add_export_hook(calls.append)
        dispatcher.remove_export_hook(calls.append)
        dispatcher.process_batch(power_batch())
        assert calls == []


class TestTeardown:
    """Test end_session."""

    def test_end_session_flushes_pending_choices(self, event_bus, monitor):
        calls = []
        dispatcher = make_dispatcher(event_bus, monitor, handlers=ChannelHandlers(choices=RecordingChoices(calls)))
        dispatcher.process_batch([make_raw("GameState.DebugPrintEntityChoices() - a", 1, source="Power")])

        session = dispatcher.end_session()

        assert calls == [("choices", ["GameState.DebugPrintEntityChoices() - a"])]
        assert session is not None
        assert dispatcher.session is None

    def test_monitor_records_batches(self, event_bus, monitor):
        dispatcher = make_dispatcher(event_bus, monitor)
        dispatcher.process_batch(power_batch())

        report = monitor.report()
        assert report["dispatch.batch"]["count"] == 1
        assert report["handler.power"]["count"] == 4
