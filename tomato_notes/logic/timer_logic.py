"""
タイマー制御ロジック（フェーズ・ラウンドの状態遷移と履歴の記録）
"""
import asyncio
from typing import Callable, Optional, Set, Tuple

import structlog

from ..errors import StorageError
from ..models import (
    COMPLETED, FOCUS, IDLE, LONG_BREAK, PAUSED, RUNNING, SHORT_BREAK, SKIPPED, STOPPED,
    HistoryEntry, PagesSnapshot, Settings,
)
from .history_log import HistoryLog

logger = structlog.get_logger(__name__)

# (notes_snapshot, pages_snapshot) のどちらか一方を返す
SnapshotProvider = Callable[[], Tuple[Optional[str], Optional[PagesSnapshot]]]


def next_phase_for(current_phase: str, current_round: int, rounds_before_long_break: int) -> Tuple[str, int]:
    """次のフェーズとラウンドを返す"""
    if current_phase == FOCUS:
        if current_round >= rounds_before_long_break:
            return LONG_BREAK, current_round
        return SHORT_BREAK, current_round
    if current_phase == SHORT_BREAK:
        return FOCUS, current_round + 1
    # longBreak
    return FOCUS, 1


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SessionController:
    """フェーズ制御クラス

    状態遷移はすべて同期的に完結する。カウントダウンはイベントループ上の
    タスクで1秒ごとに tick() を呼び、tick以外の遷移は最初にそのタスクを
    キャンセルする。イベントループがない環境（Web API・テスト）では
    tick() を外から呼ぶ。
    """

    def __init__(
        self,
        settings: Settings,
        history: HistoryLog,
        snapshot_provider: Optional[SnapshotProvider] = None,
        notifier: Optional[Callable[[str], None]] = None,
    ):
        self.settings = settings
        self.history = history
        self.snapshot_provider = snapshot_provider
        self.notifier = notifier

        self.current_phase: str = FOCUS
        self.status: str = IDLE
        self.current_round: int = 1
        self.total_rounds: int = settings.rounds_before_long_break
        self.time_left: int = settings.seconds_for(FOCUS)

        self._tick_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

        # コールバック
        self.on_tick: Optional[Callable] = None
        self.on_phase_change: Optional[Callable] = None
        self.on_status_change: Optional[Callable] = None
        self.on_history_added: Optional[Callable] = None
        self.before_focus_start: Optional[Callable] = None  # 新しい集中セッション開始前の片付け

    # -------------------- 操作 --------------------

    def start(self) -> None:
        """開始 / 再開"""
        if self.status == RUNNING:
            return
        if (self.status == IDLE and self.current_phase == FOCUS
                and not self.settings.keep_completed_across_phases
                and self.before_focus_start):
            self.before_focus_start()
        self._set_status(RUNNING)
        self._schedule_countdown()

    def pause(self) -> None:
        """一時停止"""
        if self.status != RUNNING:
            return
        self._cancel_countdown()
        self._set_status(PAUSED)

    def tick(self) -> None:
        """1秒進める（0になったらフェーズ完了）"""
        if self.status != RUNNING:
            return
        self.time_left = max(self.time_left - 1, 0)
        if self.on_tick:
            self.on_tick(self.time_left)
        if self.time_left <= 0:
            self.complete_phase()

    def complete_phase(self) -> None:
        """フェーズ完了（通知・履歴記録・次フェーズへ）"""
        self._cancel_countdown()
        self._notify(self.current_phase)
        self._record(COMPLETED)
        self.next_phase()

    def skip(self) -> None:
        """スキップ（待たずに次のフェーズへ）"""
        if self.status == IDLE:
            return
        self._cancel_countdown()
        self._record(SKIPPED)
        self.next_phase()

    def stop(self) -> None:
        """中止（フェーズは進めず、残り時間を戻す）"""
        if self.status not in (RUNNING, PAUSED):
            return
        self._cancel_countdown()
        self._record(STOPPED)
        self.time_left = self.settings.seconds_for(self.current_phase)
        self._set_status(IDLE)

    def next_phase(self) -> None:
        """次のフェーズへ進める"""
        self._cancel_countdown()
        phase, round_ = next_phase_for(
            self.current_phase, self.current_round, self.settings.rounds_before_long_break
        )
        self.current_phase = phase
        self.current_round = round_
        self.total_rounds = self.settings.rounds_before_long_break
        self.time_left = self.settings.seconds_for(phase)
        self._set_status(IDLE)
        if self.on_phase_change:
            self.on_phase_change(phase)

    def reset_cycle(self) -> None:
        """サイクルを最初からやり直す"""
        self._cancel_countdown()
        self.current_phase = FOCUS
        self.current_round = 1
        self.total_rounds = self.settings.rounds_before_long_break
        self.time_left = self.settings.seconds_for(FOCUS)
        self._set_status(IDLE)
        if self.on_phase_change:
            self.on_phase_change(FOCUS)

    def apply_settings(self) -> None:
        """設定変更を反映（待機中のみ残り時間を更新）"""
        self.total_rounds = self.settings.rounds_before_long_break
        if self.status == IDLE:
            self.time_left = self.settings.seconds_for(self.current_phase)

    async def drain(self) -> None:
        """保存待ちの履歴書き込みを待つ"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -------------------- 表示用 --------------------

    def get_formatted_time(self) -> str:
        """残り時間を整形（MM:SS）"""
        minutes = self.time_left // 60
        seconds = self.time_left % 60
        return f"{minutes:02d}:{seconds:02d}"

    def to_dict(self) -> dict:
        return {
            "currentPhase": self.current_phase,
            "status": self.status,
            "timeLeft": self.time_left,
            "currentRound": self.current_round,
            "totalRounds": self.total_rounds,
        }

    # -------------------- 内部処理 --------------------

    def _set_status(self, status: str) -> None:
        self.status = status
        if self.on_status_change:
            self.on_status_change(status)

    def _schedule_countdown(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._cancel_countdown()
        self._tick_task = loop.create_task(self._countdown())

    def _cancel_countdown(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    async def _countdown(self) -> None:
        """カウントダウン処理"""
        me = _current_task()
        while self.status == RUNNING and self._tick_task is me:
            await asyncio.sleep(1)
            if self.status != RUNNING or self._tick_task is not me:
                return
            self.tick()

    def _notify(self, phase: str) -> None:
        if not self.notifier:
            return
        try:
            self.notifier(phase)
        except Exception as e:
            # 通知の失敗でフェーズ遷移を止めない
            logger.warning("notification_failed", phase=phase, error=str(e))

    def _record(self, status: str) -> HistoryEntry:
        """現在のノートを履歴に記録"""
        notes_snapshot, pages_snapshot = None, None
        if self.snapshot_provider:
            notes_snapshot, pages_snapshot = self.snapshot_provider()
        entry = HistoryEntry(
            phase=self.current_phase,
            duration_minutes=self.settings.duration_for(self.current_phase),
            status=status,
            notes_snapshot=notes_snapshot,
            pages_snapshot=pages_snapshot,
        )
        self._fire_and_forget(self.history.add(entry))
        if self.on_history_added:
            self.on_history_added(entry)
        return entry

    def _fire_and_forget(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            try:
                asyncio.run(coro)
            except StorageError as e:
                logger.error("history_persist_failed", error=str(e))
            return

        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_persisted)

    def _on_persisted(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("history_persist_failed", error=str(error))
