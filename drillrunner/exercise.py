"""Exercises: loading, compiling, running and checking their state."""

from __future__ import annotations

import enum
import os
import re
import subprocess
import threading
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .ui import no_emoji

RUSTC_COLOR_ARGS = ("--color", "always")
RUSTC_EDITION_ARGS = ("--edition", "2021")
I_AM_DONE_REGEX = re.compile(r"^\s*///?\s*I\s+AM\s+NOT\s+DONE", re.MULTILINE)
CONTEXT = 2
CLIPPY_CARGO_TOML_PATH = "./exercises/clippy/Cargo.toml"
BUILD_SCRIPT_CARGO_TOML_PATH = "./exercises/tests/Cargo.toml"


def temp_file() -> str:
    """Return a temporary executable name unique to this process and thread."""
    return f"./temp_{os.getpid()}_{threading.get_ident()}"


def clean() -> None:
    """Remove the temporary executable, ignoring a missing file."""
    try:
        os.remove(temp_file())
    except OSError:
        pass


class Mode(enum.Enum):
    """How an exercise is checked."""

    COMPILE = "compile"
    TEST = "test"
    CLIPPY = "clippy"
    BUILD_SCRIPT = "buildscript"


@dataclass(frozen=True)
class ContextLine:
    """A source line shown around the pending marker."""

    line: str
    number: int
    important: bool


@dataclass(frozen=True)
class State:
    """Done when there is no context; pending otherwise."""

    context: tuple[ContextLine, ...] = ()

    @property
    def done(self) -> bool:
        return not self.context

    @classmethod
    def pending(cls, lines) -> State:
        return cls(tuple(lines))


@dataclass(frozen=True)
class ExerciseOutput:
    """Captured output of a compiler or of an exercise binary."""

    stdout: str
    stderr: str
    success: bool = True


class CompilationError(Exception):
    """Raised when an exercise fails to compile."""

    def __init__(self, output: ExerciseOutput):
        super().__init__(output.stderr)
        self.output = output


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _spawn(args: list[str], failure: str) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(args, capture_output=True)
    except OSError as err:
        raise RuntimeError(failure) from err


def _lines(source: str) -> list[str]:
    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


@dataclass
class Exercise:
    """An exercise as described in info.toml."""

    name: str
    path: Path
    mode: Mode
    hint: str = ""

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def __str__(self) -> str:
        return str(self.path)

    def _rustc_args(self, *extra: str) -> list[str]:
        return [
            "rustc",
            *extra,
            str(self.path),
            "-o",
            temp_file(),
            *RUSTC_COLOR_ARGS,
            *RUSTC_EDITION_ARGS,
        ]

    def _manifest(self) -> str:
        name = self.name
        return (
            "[package]\n"
            f'name = "{name}"\n'
            'version = "0.0.1"\n'
            'edition = "2021"\n'
            "[[bin]]\n"
            f'name = "{name}"\n'
            f'path = "{name}.rs"'
        )

    def _write_manifest(self, path: str) -> None:
        message = (
            "Failed to write Clippy Cargo.toml file."
            if no_emoji()
            else "Failed to write 📎 Clippy 📎 Cargo.toml file."
        )
        try:
            Path(path).write_text(self._manifest(), encoding="utf-8")
        except OSError as err:
            raise RuntimeError(message) from err

    def _invoke_compiler(self) -> subprocess.CompletedProcess:
        failure = "Failed to run 'compile' command."
        match self.mode:
            case Mode.COMPILE:
                return _spawn(self._rustc_args(), failure)
            case Mode.TEST:
                return _spawn(self._rustc_args("--test"), failure)
            case Mode.CLIPPY:
                self._write_manifest(CLIPPY_CARGO_TOML_PATH)
                # The binary is built so the exercise can also be run; a
                # failure here shows up again in clippy's own output.
                _spawn(self._rustc_args(), "Failed to compile!")
                _spawn(
                    ["cargo", "clean", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS],
                    "Failed to run 'cargo clean'",
                )
                return _spawn(
                    ["cargo", "clippy", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS, "--", "-D", "warnings", "-D", "clippy::float_cmp"],
                    failure,
                )
            case Mode.BUILD_SCRIPT:
                self._write_manifest(BUILD_SCRIPT_CARGO_TOML_PATH)
                return _spawn(
                    ["cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH],
                    failure,
                )
        raise ValueError(f"unknown mode: {self.mode!r}")

    def compile(self) -> CompiledExercise:
        """Compile the exercise; raise CompilationError on failure."""
        result = self._invoke_compiler()
        if result.returncode == 0:
            return CompiledExercise(self)
        clean()
        raise CompilationError(
            ExerciseOutput(_decode(result.stdout), _decode(result.stderr), success=False)
        )

    def state(self) -> State:
        """Return Done, or Pending with the lines around the marker."""
        source = self.path.read_text(encoding="utf-8")
        if not I_AM_DONE_REGEX.search(source):
            return State()
        lines = _lines(source)
        matched = next(
            (i for i, line in enumerate(lines) if I_AM_DONE_REGEX.search(line)), None
        )
        if matched is None:
            raise RuntimeError("This should not happen at all")
        first = max(matched - CONTEXT, 0)
        last = matched + CONTEXT
        return State.pending(
            ContextLine(line=line, number=i + 1, important=i == matched)
            for i, line in enumerate(lines)
            if first <= i <= last
        )

    def looks_done(self) -> bool:
        """Whether the pending marker has been removed from the source."""
        return self.state().done


class CompiledExercise:
    """A successfully compiled exercise; removes its binary when closed."""

    def __init__(self, exercise: Exercise):
        self.exercise = exercise
        self._closed = False

    def run(self) -> ExerciseOutput:
        """Run the compiled binary and capture its output."""
        mode = self.exercise.mode
        if mode is Mode.BUILD_SCRIPT:
            return ExerciseOutput("", "")
        args = [temp_file()]
        if mode is Mode.TEST:
            args.append("--show-output")
        result = _spawn(args, "Failed to run 'run' command")
        return ExerciseOutput(
            _decode(result.stdout), _decode(result.stderr), success=result.returncode == 0
        )

    def close(self) -> None:
        """Remove the compiled binary."""
        if not self._closed:
            clean()
            self._closed = True

    def __enter__(self) -> CompiledExercise:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def load_exercises(path: str | os.PathLike = "info.toml") -> list[Exercise]:
    """Read the exercise list from a TOML file."""
    with open(path, "rb") as fh:
        data = tomllib.load(fh)
    try:
        return [
            Exercise(
                name=str(entry["name"]),
                path=Path(entry["path"]),
                mode=Mode(entry["mode"]),
                hint=str(entry["hint"]),
            )
            for entry in data["exercises"]
        ]
    except (KeyError, TypeError) as err:
        raise ValueError(f"invalid exercise list in {path}: {err}") from err