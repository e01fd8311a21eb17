"""Compiling, running and checking exercises in the recommended order."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable

from rich.console import Console
from rich.status import Status
from rich.text import Text

from .exercise import CompilationError, CompiledExercise, Exercise, Mode
from .ui import no_emoji, success, warn

_BAR_WIDTH = 60
_SEPARATOR = "===================="


class ExerciseFailed(Exception):
    """Raised when an exercise fails to compile, run or pass its tests."""

    def __init__(self, exercise: Exercise):
        super().__init__(f"{exercise} failed")
        self.exercise = exercise


class VerificationFailed(ExerciseFailed):
    """Raised by verify with the first exercise that is not finished."""


class RunMode(enum.Enum):
    """Whether a passing exercise asks the user to remove its marker."""

    INTERACTIVE = enum.auto()
    NON_INTERACTIVE = enum.auto()


def _console() -> Console:
    return Console(highlight=False, soft_wrap=True, emoji=False, markup=False)


def _status(message: str) -> Status:
    return _console().status(message)


def _draw_progress(position: int, total: int, percentage: float) -> None:
    if total <= 0:
        filled = _BAR_WIDTH
    else:
        filled = min(_BAR_WIDTH, max(0, _BAR_WIDTH * position // total))
    if filled < _BAR_WIDTH:
        rest = ">" + "-" * (_BAR_WIDTH - filled - 1)
    else:
        rest = ""
    line = Text.assemble(
        "Progress: [",
        ("#" * filled, "green"),
        (rest, "red"),
        f"] {position}/{total} ({percentage:.1f} %)",
    )
    _console().print(line)


def verify(
    exercises: Iterable[Exercise],
    progress: tuple[int, int],
    verbose: bool = False,
    success_hints: bool = False,
) -> None:
    """Check exercises in order; raise VerificationFailed at the first unfinished one."""
    num_done, total = progress
    percentage = num_done / total * 100 if total else math.nan
    step = 100 / total if total else math.nan
    position = num_done
    _draw_progress(position, total, percentage)

    for exercise in exercises:
        try:
            finished = _check(exercise, verbose, success_hints)
        except ExerciseFailed as err:
            raise VerificationFailed(exercise) from err
        if not finished:
            raise VerificationFailed(exercise)
        percentage += step
        position += 1
        _draw_progress(position, total, percentage)


def _check(exercise: Exercise, verbose: bool, success_hints: bool) -> bool:
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            return _compile_and_test(exercise, RunMode.INTERACTIVE, verbose, success_hints)
        case Mode.COMPILE:
            return _compile_and_run_interactively(exercise, success_hints)
        case Mode.CLIPPY:
            return _compile_only(exercise, success_hints)
    raise ValueError(f"unknown mode: {exercise.mode!r}")


def test(exercise: Exercise, verbose: bool = False) -> None:
    """Compile and run the test harness of an exercise without prompting."""
    _compile_and_test(exercise, RunMode.NON_INTERACTIVE, verbose, False)


def _compile(exercise: Exercise, status: Status) -> CompiledExercise:
    try:
        return exercise.compile()
    except CompilationError as err:
        status.stop()
        warn(f"Compiling of {exercise} failed! Please try again. Here's the output:")
        print(err.output.stderr)
        raise ExerciseFailed(exercise) from err


def _compile_only(exercise: Exercise, success_hints: bool) -> bool:
    with _status(f"Compiling {exercise}...") as status:
        _compile(exercise, status).close()
    return prompt_for_completion(exercise, None, success_hints)


def _compile_and_run_interactively(exercise: Exercise, success_hints: bool) -> bool:
    with _status(f"Compiling {exercise}...") as status:
        compiled = _compile(exercise, status)
        status.update(f"Running {exercise}...")
        with compiled:
            output = compiled.run()

    if not output.success:
        warn(f"Ran {exercise} with errors")
        print(output.stdout)
        print(output.stderr)
        raise ExerciseFailed(exercise)

    return prompt_for_completion(exercise, output.stdout, success_hints)


def _compile_and_test(
    exercise: Exercise, run_mode: RunMode, verbose: bool, success_hints: bool
) -> bool:
    with _status(f"Testing {exercise}...") as status:
        compiled = _compile(exercise, status)
        with compiled:
            output = compiled.run()

    if not output.success:
        warn(f"Testing of {exercise} failed! Please try again. Here's the output:")
        print(output.stdout)
        raise ExerciseFailed(exercise)

    if verbose:
        print(output.stdout)
    if run_mode is RunMode.INTERACTIVE:
        return prompt_for_completion(exercise, None, success_hints)
    return True


def _print_separator(console: Console) -> None:
    console.print(Text(_SEPARATOR, style="bold"))


def prompt_for_completion(
    exercise: Exercise, prompt_output: str | None, success_hints: bool
) -> bool:
    """Return True if the exercise is done; otherwise explain how to move on."""
    state = exercise.state()
    if state.done:
        return True

    match exercise.mode:
        case Mode.COMPILE:
            success(f"Successfully ran {exercise}!")
        case Mode.TEST:
            success(f"Successfully tested {exercise}!")
        case Mode.CLIPPY | Mode.BUILD_SCRIPT:
            success(f"Successfully compiled {exercise}!")

    plain = no_emoji()
    clippy_message = (
        "The code is compiling, and Clippy is happy!"
        if plain
        else "The code is compiling, and 📎 Clippy 📎 is happy!"
    )
    success_message = {
        Mode.COMPILE: "The code is compiling!",
        Mode.TEST: "The code is compiling, and the tests pass!",
        Mode.CLIPPY: clippy_message,
        Mode.BUILD_SCRIPT: "Build script works!",
    }[exercise.mode]

    console = _console()
    print()
    if plain:
        print(f"~*~ {success_message} ~*~")
    else:
        print(f"🎉 🎉  {success_message} 🎉 🎉")
    print()

    if prompt_output is not None:
        print("Output:")
        _print_separator(console)
        print(prompt_output)
        _print_separator(console)
        print()
    if success_hints:
        print("Hints:")
        _print_separator(console)
        print(exercise.hint)
        _print_separator(console)
        print()

    print("You can keep working on this exercise,")
    console.print(
        Text.assemble(
            "or jump into the next one by removing the ",
            ("`I AM NOT DONE`", "bold"),
            " comment:",
        )
    )
    print()
    for context_line in state.context:
        console.print(
            Text.assemble(
                (f"{context_line.number:>2}", "bold blue"),
                " ",
                ("|", "blue"),
                "  ",
                (context_line.line, "bold" if context_line.important else ""),
            )
        )

    return False