"""
Session controller tests: phase cycle, transitions and history recording.
"""

import asyncio

import pytest

from tomato_notes.database import HISTORY_KEY, Database
from tomato_notes.logic.history_log import HistoryLog
from tomato_notes.logic.timer_logic import SessionController, next_phase_for
from tomato_notes.models import (
    COMPLETED, FOCUS, IDLE, LONG_BREAK, PAUSED, RUNNING, SHORT_BREAK, SKIPPED, STOPPED, Settings,
)


# ==========================================================================
# Fixtures
# ==========================================================================

@pytest.fixture
def notified() -> list:
    return []


@pytest.fixture
def controller(settings: Settings, history: HistoryLog, notified: list) -> SessionController:
    return SessionController(
        settings,
        history,
        snapshot_provider=lambda: ("Task A\n  sub", None),
        notifier=notified.append,
    )


# ==========================================================================
# Phase Cycle
# ==========================================================================

class TestNextPhase:
    """Phase/round arithmetic."""

    @pytest.mark.parametrize("phase, round_, expected", [
        (FOCUS, 1, (SHORT_BREAK, 1)),
        (FOCUS, 3, (SHORT_BREAK, 3)),
        (FOCUS, 4, (LONG_BREAK, 4)),
        (SHORT_BREAK, 1, (FOCUS, 2)),
        (LONG_BREAK, 4, (FOCUS, 1)),
    ])
    def test_next_phase_for(self, phase, round_, expected):
        assert next_phase_for(phase, round_, 4) == expected

    def test_full_cycle(self, controller: SessionController):
        visited = []
        for _ in range(9):
            visited.append((controller.current_phase, controller.current_round))
            controller.start()
            controller.skip()

        assert visited == [
            (FOCUS, 1), (SHORT_BREAK, 1),
            (FOCUS, 2), (SHORT_BREAK, 2),
            (FOCUS, 3), (SHORT_BREAK, 3),
            (FOCUS, 4), (LONG_BREAK, 4),
            (FOCUS, 1),
        ]
        assert controller.current_phase == SHORT_BREAK


# ==========================================================================
# Transitions
# ==========================================================================

class TestTransitions:
    """start / pause / tick / stop / skip."""

    def test_initial_state(self, controller: SessionController):
        assert controller.status == IDLE
        assert controller.get_formatted_time() == "25:00"
        assert controller.to_dict() == {
            "currentPhase": FOCUS,
            "status": IDLE,
            "timeLeft": 1500,
            "currentRound": 1,
            "totalRounds": 4,
        }

    def test_start_and_tick(self, controller: SessionController):
        controller.start()
        controller.tick()
        assert controller.status == RUNNING
        assert controller.time_left == 1499
        assert controller.get_formatted_time() == "24:59"

    def test_pause_stops_ticking(self, controller: SessionController):
        controller.start()
        controller.pause()
        controller.tick()
        assert controller.status == PAUSED
        assert controller.time_left == 1500

    def test_complete_phase_after_countdown(self, settings, controller, history, notified):
        settings.focus_duration = 0.05
        controller.reset_cycle()
        controller.start()
        for _ in range(3):
            controller.tick()

        assert controller.current_phase == SHORT_BREAK
        assert controller.status == IDLE
        assert notified == [FOCUS]
        entry = history.entries[0]
        assert entry.status == COMPLETED
        assert entry.phase == FOCUS
        assert entry.duration_minutes == 0.05
        assert entry.notes_snapshot == "Task A\n  sub"

    def test_stop_records_and_resets(self, controller, history):
        controller.start()
        controller.tick()
        controller.stop()

        assert controller.status == IDLE
        assert controller.current_phase == FOCUS
        assert controller.time_left == 1500
        assert [e.status for e in history] == [STOPPED]

    def test_stop_and_skip_when_idle_are_noops(self, controller, history):
        controller.stop()
        controller.skip()
        assert len(history) == 0
        assert controller.current_phase == FOCUS

    def test_skip_records_skipped(self, controller, history):
        controller.start()
        controller.skip()
        assert [e.status for e in history] == [SKIPPED]
        assert controller.current_phase == SHORT_BREAK

    def test_history_is_newest_first(self, controller, history):
        controller.start()
        controller.stop()
        controller.start()
        controller.skip()
        assert [e.status for e in history] == [SKIPPED, STOPPED]

    def test_failing_notifier_does_not_block(self, settings, history):
        def broken(phase):
            raise RuntimeError("no speaker")

        settings.focus_duration = 1 / 60
        controller = SessionController(settings, history, notifier=broken)
        controller.start()
        controller.tick()
        assert controller.current_phase == SHORT_BREAK
        assert history.entries[0].status == COMPLETED

    def test_before_focus_start_only_on_fresh_focus(self, controller):
        calls = []
        controller.before_focus_start = lambda: calls.append(1)

        controller.start()
        controller.pause()
        controller.start()
        assert calls == [1]

        controller.skip()
        controller.start()
        assert calls == [1]

    def test_keep_completed_disables_cleanup(self, settings, controller):
        calls = []
        settings.keep_completed_across_phases = True
        controller.before_focus_start = lambda: calls.append(1)
        controller.start()
        assert calls == []

    def test_apply_settings_when_idle(self, settings, controller):
        settings.focus_duration = 50
        settings.rounds_before_long_break = 2
        controller.apply_settings()
        assert controller.time_left == 3000
        assert controller.total_rounds == 2

    def test_apply_settings_keeps_running_time(self, settings, controller):
        controller.start()
        settings.focus_duration = 50
        controller.apply_settings()
        assert controller.time_left == 1500


# ==========================================================================
# Persistence
# ==========================================================================

class TestHistoryPersistence:
    """History entries reach the store."""

    def test_sync_transition_persists(self, controller, db_path):
        controller.start()
        controller.stop()

        stored = asyncio.run(Database(db_path).get(HISTORY_KEY))
        assert [item["status"] for item in stored] == [STOPPED]
        assert stored[0]["notesSnapshot"] == "Task A\n  sub"

    async def test_countdown_runs_on_event_loop(self, settings, history, db_path):
        settings.focus_duration = 1 / 60
        controller = SessionController(settings, history)
        controller.start()

        await asyncio.sleep(1.5)
        await controller.drain()

        assert controller.current_phase == SHORT_BREAK
        assert controller.status == IDLE
        stored = await Database(db_path).get(HISTORY_KEY)
        assert [item["status"] for item in stored] == [COMPLETED]

    async def test_pause_cancels_countdown(self, controller):
        controller.start()
        controller.pause()
        await asyncio.sleep(1.2)
        assert controller.time_left == 1500
