"""Running a single exercise and resetting it."""

from __future__ import annotations

import subprocess

from rich.console import Console

from .exercise import CompilationError, Exercise, Mode
from .ui import success, warn
from .verify import ExerciseFailed, test


def run(exercise: Exercise, verbose: bool = False) -> None:
    """Compile and run one exercise; raise ExerciseFailed if it fails."""
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            test(exercise, verbose)
        case Mode.COMPILE | Mode.CLIPPY:
            _compile_and_run(exercise)
        case _:
            raise ValueError(f"unknown mode: {exercise.mode!r}")


def reset(exercise: Exercise) -> None:
    """Undo changes to the exercise file with git stash."""
    try:
        process = subprocess.Popen(["git", "stash", "--", str(exercise.path)])
    except OSError as err:
        raise ExerciseFailed(exercise) from err
    process.wait()


def _compile_and_run(exercise: Exercise) -> None:
    console = Console(highlight=False, soft_wrap=True, emoji=False, markup=False)
    with console.status(f"Compiling {exercise}...") as status:
        try:
            compiled = exercise.compile()
        except CompilationError as err:
            status.stop()
            warn(f"Compilation of {exercise} failed!, Compiler error message:\n")
            print(err.output.stderr)
            raise ExerciseFailed(exercise) from err
        status.update(f"Running {exercise}...")
        with compiled:
            output = compiled.run()

    if output.success:
        print(output.stdout)
        success(f"Successfully ran {exercise}")
        return

    print(output.stdout)
    print(output.stderr)
    warn(f"Ran {exercise} with errors")
    raise ExerciseFailed(exercise)