import subprocess

import pytest

from drillrunner.exercise import Exercise, Mode
from drillrunner.run import reset, run
from drillrunner.verify import ExerciseFailed

PENDING = "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n"
PENDING_TEST = "// I AM NOT DONE\n\n#[test]\nfn it_works() {}\n"
FINISHED = "fn main() {\n}\n"


class FakeTools:
    def __init__(self, compile_code=0, compile_stderr=b"", run_code=0,
                 run_stdout=b"", run_stderr=b""):
        self.compile_code = compile_code
        self.compile_stderr = compile_stderr
        self.run_code = run_code
        self.run_stdout = run_stdout
        self.run_stderr = run_stderr
        self.calls = []

    def __call__(self, args, **kwargs):
        args = list(args)
        self.calls.append(args)
        if args[0] in ("rustc", "cargo"):
            return subprocess.CompletedProcess(args, self.compile_code, b"", self.compile_stderr)
        return subprocess.CompletedProcess(args, self.run_code, self.run_stdout, self.run_stderr)


class FakePopen:
    def __init__(self, args, **kwargs):
        self.args = list(args)
        self.waited = False
        FakePopen.started.append(self)

    def wait(self):
        self.waited = True
        return 0


@pytest.fixture(autouse=True)
def plain_env(monkeypatch, tmp_path):
    for name in ("NO_EMOJI", "FORCE_COLOR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def install(monkeypatch, **kwargs):
    tools = FakeTools(**kwargs)
    monkeypatch.setattr(subprocess, "run", tools)
    return tools


def make(tmp_path, name, text, mode=Mode.COMPILE):
    path = tmp_path / f"{name}.rs"
    path.write_text(text, encoding="utf-8")
    return Exercise(name=name, path=path, mode=mode, hint="")


def test_run_compile_success_prints_output(monkeypatch, tmp_path, capsys):
    install(monkeypatch, run_stdout=b"Hello World!")
    exercise = make(tmp_path, "compSuccess", FINISHED)
    run(exercise, False)
    out = capsys.readouterr().out
    assert "Hello World!" in out
    assert f"Successfully ran {exercise}" in out


def test_run_compile_exercise_does_not_prompt(monkeypatch, tmp_path, capsys):
    install(monkeypatch)
    exercise = make(tmp_path, "pending_exercise", PENDING)
    run(exercise, False)
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_test_exercise_does_not_prompt(monkeypatch, tmp_path, capsys):
    install(monkeypatch)
    exercise = make(tmp_path, "pending_test_exercise", PENDING_TEST, mode=Mode.TEST)
    run(exercise, False)
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_compile_failure(monkeypatch, tmp_path, capsys):
    install(monkeypatch, compile_code=1, compile_stderr=b"error: expected pattern")
    exercise = make(tmp_path, "compFailure", "fn main() {\n    let\n}\n")
    with pytest.raises(ExerciseFailed) as info:
        run(exercise, False)
    assert info.value.exercise is exercise
    out = capsys.readouterr().out
    assert f"Compilation of {exercise} failed!" in out
    assert "error: expected pattern" in out


def test_run_binary_failure(monkeypatch, tmp_path, capsys):
    install(monkeypatch, run_code=101, run_stdout=b"before", run_stderr=b"panicked")
    exercise = make(tmp_path, "crashing", FINISHED)
    with pytest.raises(ExerciseFailed):
        run(exercise, False)
    out = capsys.readouterr().out
    assert "before" in out
    assert "panicked" in out
    assert f"Ran {exercise} with errors" in out


def test_run_test_success_with_output(monkeypatch, tmp_path, capsys):
    install(monkeypatch, run_stdout=b"THIS TEST TOO SHALL PASS")
    exercise = make(tmp_path, "testSuccess", FINISHED, mode=Mode.TEST)
    run(exercise, True)
    assert "THIS TEST TOO SHALL PASS" in capsys.readouterr().out


def test_run_test_success_without_output(monkeypatch, tmp_path, capsys):
    install(monkeypatch, run_stdout=b"THIS TEST TOO SHALL PASS")
    exercise = make(tmp_path, "testSuccess", FINISHED, mode=Mode.TEST)
    run(exercise, False)
    assert "THIS TEST TOO SHALL PASS" not in capsys.readouterr().out


def test_run_test_not_passed(monkeypatch, tmp_path):
    install(monkeypatch, run_code=101)
    exercise = make(tmp_path, "testNotPassed", FINISHED, mode=Mode.TEST)
    with pytest.raises(ExerciseFailed) as info:
        run(exercise, False)
    assert info.value.exercise is exercise


def test_run_clippy_runs_linter_then_binary(monkeypatch, tmp_path, capsys):
    tools = install(monkeypatch, run_stdout=b"clippy binary output")
    (tmp_path / "exercises" / "clippy").mkdir(parents=True)
    exercise = make(tmp_path, "clippy1", FINISHED, mode=Mode.CLIPPY)
    run(exercise, False)
    assert len(tools.calls) == 4
    assert [call[0] for call in tools.calls[:3]] == ["rustc", "cargo", "cargo"]
    assert tools.calls[2][:2] == ["cargo", "clippy"]
    assert tools.calls[3][0].startswith("./temp_")
    out = capsys.readouterr().out
    assert "clippy binary output" in out
    assert f"Successfully ran {exercise}" in out


def test_reset_stashes_exercise(monkeypatch, tmp_path):
    FakePopen.started = []
    monkeypatch.setattr(subprocess, "Popen", FakePopen)
    exercise = make(tmp_path, "intro1", FINISHED)
    reset(exercise)
    assert [p.args for p in FakePopen.started] == [["git", "stash", "--", str(exercise.path)]]
    assert FakePopen.started[0].waited


def test_reset_failure_raises(monkeypatch, tmp_path):
    def missing(*args, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr(subprocess, "Popen", missing)
    exercise = make(tmp_path, "intro1", FINISHED)
    with pytest.raises(ExerciseFailed) as info:
        reset(exercise)
    assert info.value.exercise is exercise