"""
Formatters for displaying a reconstructed game session.

Presentation is kept out of the domain model: GameSession only holds state,
SessionFormatter turns it into lines and tables for the CLI.
"""

import logging
from typing import Any, Dict, List, Optional

from tabulate import tabulate

from .domain.game_state import GameSession

logger = logging.getLogger(__name__)


class SessionFormatter:
    """
    Formats GameSession objects and timing reports for the terminal.

    Args:
        max_picks: Number of arena picks listed in the summary
    """

    def __init__(self, max_picks: int = 10):
        self.max_picks = max_picks

    def format_for_display(self, session: GameSession) -> List[str]:
        """
        Format the whole session as lines for display.

        Returns:
            List of formatted strings ready for printing
        """
        lines = []

        clock = session.clock.time.strftime("%Y-%m-%d %H:%M:%S") if session.clock.time else "-"
        lines.append("=" * 70)
        lines.append(f"SESSION @ {clock}")
        lines.append("=" * 70)
        lines.append("")

        lines.append(self.format_summary_table(session))
        lines.append("")

        players = session.game_info.players
        if players:
            lines.append("PLAYERS:")
            for player_id in sorted(players):
                lines.append(f"  {player_id}: {players[player_id]}")
            lines.append("")

        if session.arena.deck_id is not None:
            lines.append(f"ARENA DRAFT {session.arena.deck_id} ({session.arena.hero or 'no hero yet'}):")
            for index, card_id in enumerate(session.arena.picks[:self.max_picks], 1):
                lines.append(f"  {index}. {card_id}")
            hidden = len(session.arena.picks) - self.max_picks
            if hidden > 0:
                lines.append(f"  ... {hidden} more")
            lines.append("")

        return lines

    def format_summary_table(self, session: GameSession) -> str:
        """Key counters of every session region as a two-column table."""
        info = session.game_info
        rows = [
            ["Games created", session.power.games_created],
            ["Current turn", session.power.current_turn],
            ["Entities", len(session.power.entities)],
            ["Spectating", "yes" if session.power.spectating else "no"],
            ["Game type", info.game_type or "-"],
            ["Format", info.format_type or "-"],
            ["Build", info.build_number if info.build_number is not None else "-"],
            ["GameState lines", len(session.power_log)],
            ["Choices resolved", len(session.choices.resolved)],
            ["Choices pending", len(session.choices.pending)],
            ["Scene", session.scene.current_mode or "-"],
            ["Game starts", session.scene.game_starts],
            ["Permission failures", session.scene.permission_check_failures],
            ["Achievement lines", session.achievements.lines_seen],
        ]
        return tabulate(rows, headers=["Region", "Value"], tablefmt="simple", colalign=("left", "right"))

    def format_performance_report(self, report: Dict[str, Dict[str, Any]], limit: Optional[int] = None) -> str:
        """
        Format a PerformanceMonitor report, slowest total first.

        Args:
            report: Output of PerformanceMonitor.report()
            limit: Maximum number of operations listed
        """
        if not report:
            return "No timings recorded"

        items = sorted(report.items(), key=lambda item: item[1].get("total_ms", 0), reverse=True)
        if limit:
            items = items[:limit]

        table = []
        for name, stats in items:
            threshold = stats.get("threshold_ms")
            table.append([
                name,
                stats["count"],
                f"{stats['avg_ms']:.2f}",
                f"{stats['max_ms']:.2f}",
                f"{stats['total_ms']:.1f}",
                f"{threshold:.0f}" if threshold is not None else "",
            ])
        return tabulate(
            table,
            headers=["Operation", "Calls", "Avg ms", "Max ms", "Total ms", "Limit ms"],
            tablefmt="simple",
            colalign=("left", "right", "right", "right", "right", "right"),
        )
