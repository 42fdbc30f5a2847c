import wave

import pytest

pytest.importorskip("PySide6.QtMultimedia")
pytest.importorskip("PySide6.QtWidgets")

from pomoai.models import Cue  # noqa: E402
from pomoai.notifications import MESSAGES, Notifier, cue_sound_path, write_tone  # noqa: E402


class _Sound:
    def __init__(self):
        self.volume = None
        self.plays = 0

    def setVolume(self, volume):
        self.volume = volume

    def play(self):
        self.plays += 1


class _Tray:
    def __init__(self):
        self.messages = []

    def showMessage(self, title, message, icon, ms):
        self.messages.append((title, message))


def test_cue_plays_at_saved_volume():
    sound = _Sound()
    tray = _Tray()
    notifier = Notifier(tray, sounds={Cue.WORK_COMPLETE: sound})

    notifier.play(Cue.WORK_COMPLETE, 0.3)

    assert sound.volume == 0.3
    assert sound.plays == 1
    assert tray.messages == [MESSAGES[Cue.WORK_COMPLETE]]


def test_volume_change_reaches_next_cue():
    sound = _Sound()
    notifier = Notifier(_Tray(), sounds={Cue.BREAK_COMPLETE: sound})

    notifier.play(Cue.BREAK_COMPLETE, 0.8)
    notifier.play(Cue.BREAK_COMPLETE, 0.25)

    assert sound.volume == 0.25
    assert sound.plays == 2


def test_zero_volume_only_shows_message():
    sound = _Sound()
    tray = _Tray()
    notifier = Notifier(tray, sounds={Cue.WORK_COMPLETE: sound})

    notifier.play(Cue.WORK_COMPLETE, 0.0)

    assert sound.plays == 0
    assert tray.messages == [MESSAGES[Cue.WORK_COMPLETE]]


def test_write_tone_produces_mono_wav(tmp_path):
    path = write_tone(tmp_path / "beep.wav", 440, 200)
    with wave.open(str(path), "rb") as w:
        assert w.getnchannels() == 1
        assert w.getsampwidth() == 2
        assert w.getnframes() == w.getframerate() * 200 // 1000


def test_cue_sound_is_generated_once(tmp_path):
    first = cue_sound_path(Cue.WORK_COMPLETE, tmp_path)
    stamp = first.stat().st_mtime_ns
    second = cue_sound_path(Cue.WORK_COMPLETE, tmp_path)

    assert first == second == tmp_path / "workComplete.wav"
    assert second.stat().st_mtime_ns == stamp
