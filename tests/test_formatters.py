"""Tests for the CLI formatters and argument parsing."""

import datetime

from hearthlog.app import build_parser
from hearthlog.core.domain.game_state import GameSession
from hearthlog.core.formatters import SessionFormatter
from hearthlog.core.monitoring import PerformanceMonitor


class TestSessionFormatter:
    """Test SessionFormatter output."""

    def make_session(self):
        session = GameSession()
        session.clock.time = datetime.datetime(2024, 3, 1, 21, 45, 3)
        session.power.games_created = 1
        session.power.named_tags["GameEntity"] = {"TURN": "5"}
        session.game_info.game_type = "GT_RANKED"
        session.game_info.players = {2: "Bar#5678", 1: "Foo#1234"}
        session.arena.deck_id = 77
        session.arena.picks = [f"CARD_{i}" for i in range(12)]
        return session

    def test_display_lines(self):
        lines = SessionFormatter(max_picks=10).format_for_display(self.make_session())
        text = "\n".join(lines)

        assert "SESSION @ 2024-03-01 21:45:03" in text
        assert "GT_RANKED" in text
        assert text.index("1: Foo#1234") < text.index("2: Bar#5678")
        assert "ARENA DRAFT 77" in text
        assert "CARD_9" in text
        assert "CARD_10" not in text
        assert "... 2 more" in text

    def test_empty_session(self):
        text = "\n".join(SessionFormatter().format_for_display(GameSession()))
        assert "SESSION @ -" in text
        assert "ARENA DRAFT" not in text
        assert "PLAYERS" not in text

    def test_summary_table_has_turn(self):
        table = SessionFormatter().format_summary_table(self.make_session())
        assert "Current turn" in table
        assert "5" in table

    def test_performance_report(self):
        monitor = PerformanceMonitor()
        with monitor.measure("handler.power"):
            pass
        with monitor.measure("dispatch.batch"):
            pass

        table = SessionFormatter().format_performance_report(monitor.report())
        assert "handler.power" in table
        assert "dispatch.batch" in table

    def test_empty_performance_report(self):
        assert SessionFormatter().format_performance_report({}) == "No timings recorded"


class TestArgumentParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.game_dir is None
        assert not args.verbose
        assert not args.force_stop
        assert not args.stats

    def test_flags(self):
        args = build_parser().parse_args(["--game-dir", "/games/hs", "-v", "--force-stop", "--stats"])
        assert args.game_dir == "/games/hs"
        assert args.verbose
        assert args.force_stop
        assert args.stats
