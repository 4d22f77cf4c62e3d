"""
フェーズ終了の通知（音声読み上げ）
"""
import asyncio
import platform
import subprocess
import threading

import structlog

from ..models import Settings

logger = structlog.get_logger(__name__)

PHASE_MESSAGES = {
    "focus": "Focus session complete. Time for a break.",
    "shortBreak": "Break is over. Back to focus.",
    "longBreak": "Long break is over. Starting a new cycle.",
}


def speak_sync(text: str) -> None:
    """OSの読み上げ機能で通知（対応していないOSでは何もしない）"""
    system = platform.system()
    try:
        if system == "Windows":
            cmd = [
                "powershell", "-NoProfile", "-ExecutionPolicy", "Bypass", "-Command",
                f"Add-Type -AssemblyName System.Speech; (New-Object System.Speech.Synthesis.SpeechSynthesizer).Speak('{text}');"
            ]
            subprocess.run(cmd, creationflags=0x08000000, check=False)
        elif system == "Darwin":
            subprocess.run(["say", text], check=False)
    except OSError as e:
        logger.warning("speech_failed", system=system, error=str(e))


class SpeechNotifier:
    """フェーズ終了時に呼ばれる通知（投げっぱなし）"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._tasks = set()

    def __call__(self, phase: str) -> None:
        if not (self.settings.sound_enabled or self.settings.notifications_enabled):
            return
        text = PHASE_MESSAGES.get(phase, "Phase complete.")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            threading.Thread(target=speak_sync, args=(text,), daemon=True).start()
            return
        task = loop.create_task(asyncio.to_thread(speak_sync, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
