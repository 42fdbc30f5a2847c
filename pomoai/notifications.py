from __future__ import annotations
import logging
import math
import struct
import wave
from pathlib import Path
from typing import Dict, Optional

from PySide6.QtCore import QObject, QUrl
from PySide6.QtMultimedia import QSoundEffect
from PySide6.QtWidgets import QSystemTrayIcon

from .db import data_dir
from .models import Cue

logger = logging.getLogger(__name__)

MESSAGES = {
    Cue.WORK_COMPLETE: ("Pomodoro complete", "Nice work. Time for a break."),
    Cue.BREAK_COMPLETE: ("Break over", "Back to work when you're ready."),
}

# (frequency Hz, length ms)
TONES = {
    Cue.WORK_COMPLETE: (880, 450),
    Cue.BREAK_COMPLETE: (660, 450),
}

SAMPLE_RATE = 22_050


def write_tone(path: Path, frequency: int, length_ms: int) -> Path:
    """Write a mono 16-bit sine tone with a short fade in/out."""
    frames = SAMPLE_RATE * length_ms // 1000
    fade = max(1, frames // 10)
    samples = bytearray()
    for i in range(frames):
        envelope = min(1.0, i / fade, (frames - i) / fade)
        value = int(32767 * 0.8 * envelope * math.sin(2 * math.pi * frequency * i / SAMPLE_RATE))
        samples += struct.pack("<h", value)

    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(SAMPLE_RATE)
        w.writeframes(bytes(samples))
    return path


def cue_sound_path(cue: Cue, folder: Optional[Path] = None) -> Path:
    """Return the wav file for a cue, generating it on first use."""
    path = (folder or data_dir() / "sounds") / f"{cue.value}.wav"
    if not path.exists():
        frequency, length_ms = TONES[cue]
        write_tone(path, frequency, length_ms)
    return path


def load_cue_sounds(parent: Optional[QObject] = None, folder: Optional[Path] = None) -> Dict[Cue, QSoundEffect]:
    sounds: Dict[Cue, QSoundEffect] = {}
    for cue in Cue:
        try:
            path = cue_sound_path(cue, folder)
        except OSError as e:
            logger.warning("No sound for %s: %s", cue.value, e)
            continue
        effect = QSoundEffect(parent)
        effect.setSource(QUrl.fromLocalFile(str(path)))
        sounds[cue] = effect
    return sounds


class Notifier:
    """Plays phase-completion cues and shows the matching tray message.

    `sounds` maps each cue to anything with `setVolume(float)` and `play()`;
    by default QSoundEffects over generated tones.
    """

    def __init__(self, tray: QSystemTrayIcon, sounds: Optional[Dict[Cue, object]] = None):
        self.tray = tray
        self.sounds = sounds if sounds is not None else load_cue_sounds(tray)

    def play(self, cue: Cue, volume: float) -> None:
        title, message = MESSAGES[cue]
        sound = self.sounds.get(cue)
        if sound is not None and volume > 0:
            sound.setVolume(max(0.0, min(1.0, volume)))
            sound.play()
        self.tray.showMessage(title, message, QSystemTrayIcon.MessageIcon.Information, 10_000)
