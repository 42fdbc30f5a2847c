import pytest

from pomoai.db import connect, migrate
from pomoai.engine import TimerEngine
from pomoai.models import ActionRejected, BreakResume, Cue, Phase, Settings, Task
from pomoai.repository import Repository
from pomoai.tasks import TaskStore


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _setup(work=1, short_break=1, long_break=2, interval=4, sessions=0, sound=True, repo=None):
    if repo is None:
        conn = connect(":memory:")
        migrate(conn)
        repo = Repository(conn)
        repo.save_settings(Settings(work=work, short_break=short_break, long_break=long_break,
                                    long_break_interval=interval, sound_enabled=sound))
        repo.set_completed_work_sessions(sessions)
    settings = repo.get_settings()
    tasks = TaskStore(repo, work_seconds=settings.work * 60, clock=_Clock())
    cues = []
    engine = TimerEngine(repo, tasks, notify=lambda cue, volume: cues.append(cue))
    return repo, tasks, engine, cues


def _start(tasks, engine, name="Write spec"):
    t = tasks.add(name)
    engine.select_task(t.id)
    engine.toggle()
    return t


def _run_out(engine):
    while engine.running:
        engine.tick()


def test_initial_state():
    _, _, engine, _ = _setup(work=25)
    assert engine.phase is Phase.WORK
    assert engine.seconds_left == 25 * 60
    assert engine.running is False


def test_toggle_without_task_is_noop():
    _, _, engine, _ = _setup()
    engine.toggle()
    assert engine.running is False


def test_toggle_flips_running():
    _, tasks, engine, _ = _setup()
    _start(tasks, engine)
    assert engine.running is True
    engine.toggle()
    assert engine.running is False


def test_toggle_at_zero_starts_fresh_interval():
    _, tasks, engine, _ = _setup(work=1)
    t = tasks.add("a")
    engine.select_task(t.id)
    engine.seconds_left = 0
    engine.toggle()
    assert engine.running is True
    assert engine.seconds_left == 60


def test_ticks_never_increase_or_go_negative():
    _, tasks, engine, _ = _setup(work=1)
    _start(tasks, engine)
    seen = []
    while engine.running:
        seen.append(engine.seconds_left)
        engine.tick()
    assert seen == sorted(seen, reverse=True)
    assert seen[-1] == 1
    assert all(s >= 0 for s in seen)


def test_tick_when_paused_does_nothing():
    _, tasks, engine, _ = _setup()
    _start(tasks, engine)
    engine.toggle()
    before = engine.seconds_left
    engine.tick()
    assert engine.seconds_left == before


def test_work_expiry_goes_to_short_break():
    repo, tasks, engine, cues = _setup(work=1, short_break=3, interval=4)
    t = _start(tasks, engine)
    _run_out(engine)

    assert engine.phase is Phase.SHORT_BREAK
    assert engine.seconds_left == 180
    assert engine.running is False
    assert engine.sessions == 1
    assert repo.get_completed_work_sessions() == 1
    assert tasks.get(t.id).pomodoros == 1
    assert repo.get_tasks()[0].pomodoros == 1
    assert cues == [Cue.WORK_COMPLETE]
    assert repo.get_break_resume() == BreakResume(mode=Phase.SHORT_BREAK, seconds_left=180, running=False)


def test_work_expiry_refills_task_time():
    repo, tasks, engine, _ = _setup(work=1)
    t = _start(tasks, engine)
    _run_out(engine)
    assert tasks.get(t.id).remaining_seconds == 60
    assert repo.get_tasks()[0].remaining_seconds == 60


def test_long_break_after_interval_then_back_to_work():
    repo, tasks, engine, cues = _setup(work=1, long_break=2, interval=4, sessions=3)
    _start(tasks, engine)
    _run_out(engine)

    assert engine.phase is Phase.LONG_BREAK
    assert engine.seconds_left == 120
    assert engine.sessions == 0
    assert repo.get_completed_work_sessions() == 0

    engine.toggle()
    _run_out(engine)

    assert engine.phase is Phase.WORK
    assert engine.seconds_left == 60
    assert engine.sessions == 0
    assert cues == [Cue.WORK_COMPLETE, Cue.BREAK_COMPLETE]
    assert repo.get_break_resume() is None


@pytest.mark.parametrize("sessions,interval,expected", [
    (0, 1, Phase.LONG_BREAK),
    (0, 2, Phase.SHORT_BREAK),
    (1, 2, Phase.LONG_BREAK),
    (2, 4, Phase.SHORT_BREAK),
])
def test_break_kind_follows_session_counter(sessions, interval, expected):
    _, tasks, engine, _ = _setup(sessions=sessions, interval=interval)
    _start(tasks, engine)
    _run_out(engine)
    assert engine.phase is expected
    assert engine.sessions == (0 if expected is Phase.LONG_BREAK else sessions + 1)


def test_on_expire_is_idempotent():
    _, tasks, engine, cues = _setup()
    t = _start(tasks, engine)
    _run_out(engine)
    engine.on_expire()
    assert engine.phase is Phase.SHORT_BREAK
    assert tasks.get(t.id).pomodoros == 1
    assert cues == [Cue.WORK_COMPLETE]


def test_reset_keeps_phase_and_counter():
    _, tasks, engine, _ = _setup(short_break=5)
    _start(tasks, engine)
    _run_out(engine)
    engine.toggle()
    for _ in range(10):
        engine.tick()

    engine.reset()

    assert engine.phase is Phase.SHORT_BREAK
    assert engine.sessions == 1
    assert engine.seconds_left == 300
    assert engine.running is False


def test_reset_in_work_saves_task_time():
    repo, tasks, engine, _ = _setup(work=25)
    t = _start(tasks, engine)
    for _ in range(30):
        engine.tick()
    engine.reset()
    assert engine.seconds_left == 1500
    assert repo.get_tasks()[0].remaining_seconds == 1500
    assert tasks.get(t.id).remaining_seconds == 1500


def test_skip_break_goes_to_paused_work_without_cue():
    repo, tasks, engine, cues = _setup(work=1)
    _start(tasks, engine)
    _run_out(engine)
    engine.toggle()
    engine.tick()

    engine.skip_break()

    assert engine.phase is Phase.WORK
    assert engine.seconds_left == 60
    assert engine.running is False
    assert cues == [Cue.WORK_COMPLETE]
    assert repo.get_break_resume() is None


def test_skip_break_during_work_is_noop():
    _, tasks, engine, _ = _setup()
    _start(tasks, engine)
    engine.skip_break()
    assert engine.phase is Phase.WORK
    assert engine.running is True


def test_switching_tasks_restores_their_time():
    repo, tasks, engine, _ = _setup(work=25)
    a = tasks.add("a")
    b = tasks.add("b")
    engine.select_task(a.id)
    engine.toggle()
    for _ in range(10):
        engine.tick()
    engine.toggle()
    assert repo.get_tasks()[0].remaining_seconds == 1490

    engine.select_task(b.id)
    assert engine.seconds_left == 1500
    assert engine.running is False

    engine.select_task(a.id)
    assert engine.seconds_left == 1490


def test_paused_settings_save_keeps_task_and_timer_in_step():
    _, tasks, engine, _ = _setup(work=25)
    a = tasks.add("a")
    b = tasks.add("b")
    engine.select_task(a.id)
    engine.toggle()
    for _ in range(10):
        engine.tick()
    engine.toggle()

    engine.apply_settings(Settings(work=25, sound_enabled=False))

    assert engine.seconds_left == 1490
    assert tasks.get(a.id).remaining_seconds == 1490

    engine.select_task(b.id)
    engine.select_task(a.id)
    assert engine.seconds_left == 1490


def test_paused_work_length_change_reloads_selected_task():
    _, tasks, engine, _ = _setup(work=25)
    a = tasks.add("a")
    engine.select_task(a.id)
    engine.toggle()
    for _ in range(10):
        engine.tick()
    engine.toggle()

    engine.apply_settings(Settings(work=30))

    assert tasks.get(a.id).remaining_seconds == 1800
    assert engine.seconds_left == tasks.get(a.id).remaining_seconds
    assert engine.phase is Phase.WORK


def test_deselecting_resets_to_work():
    _, tasks, engine, _ = _setup(work=25)
    a = _start(tasks, engine)
    for _ in range(5):
        engine.tick()
    engine.toggle()

    engine.select_task(a.id)

    assert tasks.current is None
    assert engine.phase is Phase.WORK
    assert engine.seconds_left == 1500
    assert engine.running is False


def test_completing_current_task_resets_engine():
    _, tasks, engine, _ = _setup(work=25)
    a = _start(tasks, engine)
    for _ in range(5):
        engine.tick()

    tasks.toggle_complete(a.id)

    assert engine.current_task is None
    assert engine.running is False
    assert engine.seconds_left == 1500


def test_switching_while_running_or_in_break_is_rejected():
    _, tasks, engine, _ = _setup()
    a = _start(tasks, engine)
    b = tasks.add("b")
    with pytest.raises(ActionRejected):
        engine.select_task(b.id)
    assert tasks.current_id == a.id

    _run_out(engine)
    with pytest.raises(ActionRejected):
        engine.select_task(b.id)
    assert tasks.current_id == a.id
    assert engine.phase is Phase.SHORT_BREAK


def test_paused_settings_change_resizes_current_phase():
    _, tasks, engine, _ = _setup(work=25)
    a = tasks.add("a")
    engine.select_task(a.id)

    engine.apply_settings(Settings(work=30))

    assert engine.seconds_left == 1800
    assert tasks.get(a.id).remaining_seconds == 1800


def test_running_settings_change_does_not_resize():
    _, tasks, engine, _ = _setup(work=25)
    _start(tasks, engine)
    engine.tick()

    engine.apply_settings(Settings(work=30))

    assert engine.seconds_left == 1499
    assert engine.running is True


def test_settings_change_for_other_phase_keeps_time():
    _, tasks, engine, _ = _setup(work=25, short_break=5)
    a = tasks.add("a")
    engine.select_task(a.id)
    engine.toggle()
    for _ in range(10):
        engine.tick()
    engine.toggle()

    engine.apply_settings(Settings(work=25, short_break=10))

    assert engine.seconds_left == 1490


def test_settings_are_persisted():
    repo, _, engine, _ = _setup()
    engine.apply_settings(Settings(work=40, long_break_interval=2))
    assert repo.get_settings() == Settings(work=40, long_break_interval=2)


def test_sound_disabled_plays_nothing():
    _, tasks, engine, cues = _setup(sound=False)
    _start(tasks, engine)
    _run_out(engine)
    assert engine.phase is Phase.SHORT_BREAK
    assert cues == []


def test_cue_carries_saved_volume():
    repo, tasks, _, _ = _setup()
    repo.save_settings(Settings(work=1, short_break=1, sound_volume=0.3))
    played = []
    engine = TimerEngine(repo, tasks, notify=lambda cue, volume: played.append((cue, volume)))
    _start(tasks, engine)
    _run_out(engine)
    engine.toggle()
    _run_out(engine)

    assert played == [(Cue.WORK_COMPLETE, 0.3), (Cue.BREAK_COMPLETE, 0.3)]


def test_stored_break_without_selected_task_is_dropped():
    repo, _, _, _ = _setup(work=25, short_break=5)
    repo.save_tasks([Task(id="a", name="a", completed=True, pomodoros=1)])
    repo.set_current_task_id("a")
    repo.save_break_resume(BreakResume(mode=Phase.SHORT_BREAK, seconds_left=120, running=True))

    _, tasks, restored, _ = _setup(repo=repo)

    assert tasks.current is None
    assert restored.phase is Phase.WORK
    assert restored.seconds_left == 25 * 60
    assert restored.running is False
    assert repo.get_break_resume() is None


def test_break_is_restored_paused():
    repo, tasks, engine, _ = _setup(short_break=5)
    _start(tasks, engine)
    _run_out(engine)
    engine.toggle()
    for _ in range(7):
        engine.tick()
    assert repo.get_break_resume().running is True

    _, _, restored, _ = _setup(repo=repo)

    assert restored.phase is Phase.SHORT_BREAK
    assert restored.seconds_left == 293
    assert restored.running is False
    assert restored.sessions == 1


def test_selected_task_time_is_restored_on_startup():
    repo, tasks, engine, _ = _setup(work=25)
    repo.save_tasks([Task(id="a", name="a", remaining_seconds=900, pomodoros=1)])
    repo.set_current_task_id("a")

    _, _, restored, _ = _setup(repo=repo)

    assert restored.current_task.id == "a"
    assert restored.phase is Phase.WORK
    assert restored.seconds_left == 900


def test_listeners_see_every_change():
    _, tasks, engine, _ = _setup()
    states = []
    engine.add_listener(states.append)
    _start(tasks, engine)
    engine.tick()
    assert [s.running for s in states] == [False, True, True]
    assert states[-1].seconds_left == 59
