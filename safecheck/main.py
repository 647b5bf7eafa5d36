# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""SafeCheck - Command Line Entry Point.

Usage:
    safecheck checkin --user-id ID [--mock] [--strategy remote|local] [--lockdown]
    safecheck history --user-id ID [--limit N]
    safecheck serve [--host HOST] [--port PORT]

Common options (before the subcommand):
    --config PATH   YAML config file (default: search safecheck.local.yaml, safecheck.yaml)
    --debug         Enable debug logging
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from safecheck.capture.camera_session import get_camera
from safecheck.capture.frame_sampler import FrameSampler
from safecheck.checkin.lockdown import AttentionEscalator, TerminalPlatform
from safecheck.checkin.scheduler import AsyncioScheduler
from safecheck.checkin.state_machine import CheckInStateMachine
from safecheck.config import Settings, load_settings
from safecheck.database import Database
from safecheck.detection import DetectionStrategy, LocalFrameHeuristic, get_detector
from safecheck.models.checkin import CheckInPhase, CheckInRecord, CheckInSessionState
from safecheck.telemetry import BatteryTelemetry

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings, debug: bool = False, console: bool = True) -> None:
    """Configure logging based on settings.

    Args:
        settings: Settings object
        debug: Enable debug mode
        console: Also log to stderr
    """
    level = logging.DEBUG if debug else getattr(
        logging, settings.logging.level.upper(), logging.INFO
    )

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if settings.logging.file:
        log_dir = os.path.dirname(settings.logging.file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(
            settings.logging.file,
            maxBytes=settings.logging.max_size_mb * 1024 * 1024,
            backupCount=settings.logging.backup_count,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce verbosity of some noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger.info(f"Logging configured (level: {logging.getLevelName(level)})")


def format_time_since(then: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human-readable age of a check-in, e.g. "2h ago"."""
    if then is None:
        return "Never"
    now = now or datetime.now()
    minutes = int((now - then).total_seconds() // 60)
    hours = minutes // 60
    if hours > 48:
        return then.strftime("%b %d, %I:%M %p")
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return "Just now"


class CheckInApp:
    """Runs one interactive check-in in the terminal.

    Wires the camera, sampler, detector and record store into a
    CheckInStateMachine, prints guidance as it changes and handles the
    manual fallback prompt.
    """

    def __init__(
        self,
        settings: Settings,
        user_id: str,
        strategy: Optional[DetectionStrategy] = None,
        lockdown: bool = False,
    ):
        self.settings = settings
        self.user_id = user_id
        self.strategy = strategy
        self.lockdown = lockdown

        self.database: Optional[Database] = None
        self.detector = None
        self.state_machine: Optional[CheckInStateMachine] = None
        self.escalator: Optional[AttentionEscalator] = None
        self._changed: Optional[asyncio.Event] = None
        self._record: Optional[CheckInRecord] = None
        self._last_guidance = ""

    async def run(self) -> bool:
        """Run the check-in.

        Returns:
            True if the user checked in
        """
        self._changed = asyncio.Event()
        await self._initialize_components()

        if self.escalator:
            self.escalator.set_active(True)

        try:
            await self.state_machine.start()
            await self._run_session()
            if self._record is not None:
                print(f"Checked in at {self._record.timestamp:%H:%M:%S}")
                # Let the confirmation display and camera release finish
                await asyncio.sleep(self.settings.checkin.success_display_seconds)
        finally:
            await self._shutdown()

        return self._record is not None

    async def _initialize_components(self) -> None:
        logger.info("Initializing components...")

        self.database = Database(self.settings.database.path)
        await self.database.initialize()

        scheduler = AsyncioScheduler()
        camera = get_camera(self.settings)
        self.detector = get_detector(self.settings, self.strategy)

        if self.detector.strategy == DetectionStrategy.LOCAL:
            size = (self.settings.sampler.local_width, self.settings.sampler.local_height)
        else:
            size = (self.settings.sampler.remote_width, self.settings.sampler.remote_height)
        sampler = FrameSampler(camera, width=size[0], height=size[1], mirror=self.settings.sampler.mirror)

        telemetry = BatteryTelemetry() if self.settings.telemetry.share_battery else None

        self.state_machine = CheckInStateMachine(
            settings=self.settings,
            camera=camera,
            sampler=sampler,
            heuristic=LocalFrameHeuristic.from_settings(self.settings.heuristic, self.settings.sampler),
            detector=self.detector,
            record_sink=self.database,
            user_id=self.user_id,
            scheduler=scheduler,
            telemetry=telemetry,
        )
        self.state_machine.add_listener(self._on_state)
        self.state_machine.add_check_in_listener(self._on_check_in)

        if self.lockdown:
            self.escalator = AttentionEscalator(TerminalPlatform(), scheduler, self.settings.lockdown)

    async def _run_session(self) -> None:
        sm = self.state_machine
        while self._record is None:
            if sm.phase == CheckInPhase.MANUAL_FALLBACK:
                prompt = (
                    f"[Enter] {self.settings.messages.manual_prompt}   "
                    "[r] Retry camera   [q] Quit: "
                )
                try:
                    answer = await asyncio.to_thread(input, prompt)
                except EOFError:
                    return
                answer = answer.strip().lower()
                if answer == "q":
                    return
                if answer == "r":
                    await sm.retry()
                else:
                    await sm.confirm_manually()
                continue

            self._changed.clear()
            await self._changed.wait()

    def _on_state(self, state: CheckInSessionState) -> None:
        if state.guidance and state.guidance != self._last_guidance:
            suffix = ""
            if state.phase == CheckInPhase.SCANNING and state.attempts_remaining:
                suffix = f" ({state.attempts_remaining} attempts remaining)"
            print(f"{state.guidance}{suffix}")
        self._last_guidance = state.guidance

        if state.phase == CheckInPhase.SUCCESS and self.escalator:
            self.escalator.set_active(False)

        if self._changed is not None:
            self._changed.set()

    def _on_check_in(self, record: CheckInRecord) -> None:
        self._record = record
        if self._changed is not None:
            self._changed.set()

    async def _shutdown(self) -> None:
        logger.info("Shutting down...")

        if self.escalator:
            self.escalator.dispose()
        if self.state_machine:
            await self.state_machine.close()
        if self.detector:
            await self.detector.close()
        if self.database:
            await self.database.close()

        logger.info("Shutdown complete")


async def show_history(settings: Settings, user_id: str, limit: int = 20) -> None:
    """Print a user's recent check-ins."""
    database = Database(settings.database.path)
    await database.initialize()
    try:
        await database.cleanup_old_check_ins(settings.database.retention_days)
        rows = await database.get_check_ins(user_id, limit=limit)
    finally:
        await database.close()

    latest = datetime.fromisoformat(rows[0]["checked_in_at"]) if rows else None
    print(f"Last check-in for {user_id}: {format_time_since(latest)}")

    for row in rows:
        line = f"  {row['checked_in_at']}"
        if row.get("battery_level") is not None:
            charging = " (charging)" if row.get("is_charging") else ""
            line += f"  battery {row['battery_level']}%{charging}"
        print(line)


def serve(settings: Settings, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the face-detect service with uvicorn."""
    import uvicorn

    from safecheck.service.server import create_app

    uvicorn.run(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_level=settings.server.log_level.lower(),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="safecheck",
        description="SafeCheck face-presence check-in",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Check in with the simulated camera and detector
    safecheck checkin --user-id mom --mock

    # Check in with pixel heuristics only, keeping the prompt in focus
    safecheck checkin --user-id mom --strategy local --lockdown

    # Run the face-detect service
    safecheck serve --port 8200
        """
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    checkin = subparsers.add_parser("checkin", help="Run a face check-in")
    checkin.add_argument("--user-id", required=True, help="Who is checking in")
    checkin.add_argument("--mock", "-m", action="store_true", help="Use mock camera and detector")
    checkin.add_argument(
        "--strategy",
        choices=[s.value for s in DetectionStrategy],
        default=None,
        help="Detection tier (default: from config)"
    )
    checkin.add_argument(
        "--lockdown",
        action="store_true",
        help="Ring the bell and guard against Ctrl+C until checked in"
    )

    history = subparsers.add_parser("history", help="Show recent check-ins")
    history.add_argument("--user-id", required=True)
    history.add_argument("--limit", type=int, default=20)

    serve_cmd = subparsers.add_parser("serve", help="Run the face-detect service")
    serve_cmd.add_argument("--host", default=None)
    serve_cmd.add_argument("--port", type=int, default=None)

    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if getattr(args, "mock", False):
        settings.mock_mode = True

    settings.ensure_directories()

    # Interactive check-ins keep the terminal for guidance
    setup_logging(settings, args.debug, console=args.command != "checkin" or args.debug)

    try:
        if args.command == "checkin":
            strategy = DetectionStrategy(args.strategy) if args.strategy else None
            app = CheckInApp(settings, args.user_id, strategy=strategy, lockdown=args.lockdown)
            ok = asyncio.run(app.run())
            sys.exit(0 if ok else 1)
        elif args.command == "history":
            asyncio.run(show_history(settings, args.user_id, args.limit))
        elif args.command == "serve":
            serve(settings, args.host, args.port)
    except KeyboardInterrupt:
        print("\nInterrupted")
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
