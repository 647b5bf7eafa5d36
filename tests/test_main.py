# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the command line."""

import asyncio
from datetime import datetime, timedelta

import pytest

from safecheck.database import Database
from safecheck.main import CheckInApp, build_parser, format_time_since, show_history
from safecheck.models.checkin import BatteryStatus, CheckInRecord


def test_format_time_since():
    now = datetime(2026, 3, 10, 12, 0)

    assert format_time_since(None) == "Never"
    assert format_time_since(now - timedelta(seconds=20), now) == "Just now"
    assert format_time_since(now - timedelta(minutes=5), now) == "5m ago"
    assert format_time_since(now - timedelta(hours=2, minutes=5), now) == "2h ago"
    assert format_time_since(now - timedelta(days=3), now) == "Mar 07, 12:00 PM"


def test_parser_checkin():
    args = build_parser().parse_args(["checkin", "--user-id", "mom", "--mock", "--strategy", "local"])

    assert args.command == "checkin"
    assert args.user_id == "mom"
    assert args.mock
    assert args.strategy == "local"
    assert not args.lockdown


def test_parser_rejects_unknown_strategy():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["checkin", "--user-id", "mom", "--strategy", "psychic"])


def test_history_output(settings, capsys):
    async def seed():
        db = Database(settings.database.path)
        await db.initialize()
        await db.insert_check_in(
            CheckInRecord("mom", timestamp=datetime.now() - timedelta(minutes=10)).with_battery(
                BatteryStatus(64, True)
            )
        )
        await db.close()

    asyncio.run(seed())
    asyncio.run(show_history(settings, "mom"))

    out = capsys.readouterr().out
    assert "Last check-in for mom: 10m ago" in out
    assert "battery 64% (charging)" in out


def test_mock_checkin_end_to_end(settings, capsys):
    settings.mock_mode = True
    settings.sampler.warmup_seconds = 0
    settings.sampler.interval_seconds = 0.05
    settings.checkin.success_display_seconds = 0

    app = CheckInApp(settings, "mom")
    assert asyncio.run(app.run()) is True

    async def latest():
        db = Database(settings.database.path)
        await db.initialize()
        try:
            return await db.get_latest_check_in("mom")
        finally:
            await db.close()

    row = asyncio.run(latest())
    assert row is not None
    assert row["battery_level"] is None
    assert "Face detected" in capsys.readouterr().out
