"""
Command line tracker.

Runs the pipeline until Ctrl-C, printing lifecycle changes and errors as
they happen and a session summary on exit.
"""

import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from termcolor import colored

from .config.config_manager import TrackerConfig
from .core.domain.game_state import GameSession
from .core.events import Event, EventBus, EventType, get_event_bus
from .core.formatters import SessionFormatter
from .core.lifecycle import LifecycleState, PipelineController
from .core.monitoring import get_monitor

logger = logging.getLogger(__name__)

LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "hearthlog.log"


def setup_logging(level: str = "INFO"):
    """Log to logs/hearthlog.log and the console."""
    LOG_DIR.mkdir(exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, encoding='utf-8'),
            logging.StreamHandler()
        ]
    )


class TrackerApp:
    """
    Headless tracker: one PipelineController driven from the terminal.

    Args:
        config: Loaded tracker configuration
        force_stop: Stop the tailer immediately on exit
        show_stats: Print the timing report on exit
        event_bus: Bus to listen on (shared bus if None)
    """

    def __init__(self, config: TrackerConfig, force_stop: bool = False, show_stats: bool = False,
                 event_bus: Optional[EventBus] = None):
        self.config = config
        self.force_stop = force_stop
        self.show_stats = show_stats
        self.event_bus = event_bus or get_event_bus()
        self.formatter = SessionFormatter()
        self.session = GameSession()
        self.controller = PipelineController(config, event_bus=self.event_bus)
        self._exit: Optional[asyncio.Event] = None
        self._last_turn = 0

        self._subscriptions = [
            (EventType.LIFECYCLE_CHANGED, self._on_lifecycle_changed),
            (EventType.ERROR_OCCURRED, self._on_error),
            (EventType.PERMISSION_MISMATCH, self._on_permission_mismatch),
        ]
        for event_type, handler in self._subscriptions:
            self.event_bus.subscribe(event_type, handler)
        self.controller.dispatcher.add_export_hook(self._on_batch_applied)

    def request_exit(self):
        if self._exit is not None:
            self._exit.set()

    async def run(self) -> int:
        """Start, wait for exit, stop. Returns the process exit code."""
        self._exit = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.request_exit)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: KeyboardInterrupt reaches main() instead
            pass

        start = asyncio.create_task(self.controller.start(self.session))
        exit_wait = asyncio.create_task(self._exit.wait())
        await asyncio.wait({start, exit_wait}, return_when=asyncio.FIRST_COMPLETED)

        if not start.done():
            # Still waiting for Hearthstone
            await self.controller.stop()
            await start
        started = start.result()

        if started:
            print(colored("Tracking Hearthstone logs. Press Ctrl-C to stop.", "green"))
            await exit_wait
        exit_wait.cancel()

        await self.controller.stop(force=self.force_stop)
        recovery = self.controller.recovery_task
        if recovery is not None and not recovery.done():
            await recovery

        for event_type, handler in self._subscriptions:
            self.event_bus.unsubscribe(event_type, handler)
        self.print_summary()
        return 0 if started else 1

    def print_summary(self):
        print()
        for line in self.formatter.format_for_display(self.session):
            print(line)
        if self.show_stats:
            print(self.formatter.format_performance_report(get_monitor().report()))

    def _on_batch_applied(self, session: GameSession):
        turn = session.power.current_turn
        if turn and turn != self._last_turn:
            self._last_turn = turn
            print(colored(f"Turn {turn}", "cyan"))
        logger.debug(f"Batch applied, clock at {session.clock.time}")

    def _on_lifecycle_changed(self, event: Event):
        state = event.data["state"]
        logger.info(f"Pipeline {state.name}")
        if state is LifecycleState.STARTING and not self.config.game_directory_exists:
            print(colored("Waiting for Hearthstone to start...", "yellow"))

    def _on_error(self, event: Event):
        print(colored(f"ERROR: {event.data['message']}", "red", attrs=["bold"]))
        if event.data.get("remediation"):
            print(colored(event.data["remediation"], "yellow"))

    def _on_permission_mismatch(self, event: Event):
        # The controller already stopped the pipeline; nothing left to run
        self.request_exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hearthstone log tracker")
    parser.add_argument("--game-dir", help="Hearthstone installation directory (saved to the config)")
    parser.add_argument("--config", type=Path, help="Config file (default: ~/.hearthlog/config.json)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--force-stop", action="store_true", help="Stop without finishing the current read on exit")
    parser.add_argument("--stats", action="store_true", help="Print handler timings on exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Load environment variables from .env file before the config reads them
    load_dotenv()
    config = TrackerConfig.load(args.config)
    setup_logging("DEBUG" if args.verbose else config.log_level)
    if args.game_dir:
        config.set_game_directory(Path(args.game_dir))

    app = TrackerApp(config, force_stop=args.force_stop, show_stats=args.stats)
    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
