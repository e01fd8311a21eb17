"""Command-line entry point: listing, running, verifying and watching exercises."""

from __future__ import annotations

import argparse
import enum
import itertools
import json
import math
import os
import queue
import subprocess
import sys
import threading
import time
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import asdict, dataclass, field
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .exercise import Exercise, load_exercises
from .project import RustAnalyzerProject
from .run import reset, run
from .ui import no_emoji
from .verify import ExerciseFailed, VerificationFailed, verify

VERSION = "5.5.1"
INFO_FILE = "info.toml"
EXERCISES_DIR = "./exercises"
CHECK_RESULT_PATH = ".github/result/check_result.json"
DEBOUNCE_SECONDS = 1.0

WELCOME = """\
       welcome to...
  +-----------------------------+
  |        d r i l l r u n      |
  +-----------------------------+"""

DEFAULT_OUT = """\
Thanks for installing drillrunner!

Is this your first time? Don't worry, this was made for beginners! Before you
get started, here's a couple of notes about how it works:

1. The central concept is that you solve exercises. These exercises usually
   have some sort of syntax error in them, which will cause them to fail
   compilation or testing. Sometimes there's a logic error instead of a syntax
   error. No matter what error, it's your job to find it and fix it! You'll
   know when you fixed it because then the exercise will compile and the
   runner will be able to move on to the next exercise.
2. If you run in watch mode (which we recommend), it'll automatically start
   with the first exercise. Don't get confused by an error message popping up
   as soon as you start! This is part of the exercise that you're supposed to
   solve, so open the exercise file in an editor and start your detective work!
3. If you're stuck on an exercise, there is a helpful hint you can view by
   typing 'hint' (in watch mode), or running `drillrunner hint exercise_name`.
4. If you want to use `rust-analyzer` with the exercises, which provides
   features like autocompletion, run the command `drillrunner lsp`.

Got all that? Great! To get started, run `drillrunner watch` in order to get
the first exercise. Make sure to have your editor open!"""

FINISH_LINE = """\
+----------------------------------------------------+
|          You made it to the finish line!           |
+----------------------------------------------------+

We hope you enjoyed learning about the various aspects of Rust!
If you noticed any issues, please don't hesitate to report them.
You can also contribute your own exercises to help the greater community!"""

SHELL_HELP = """\
Commands available to you in watch mode:
  hint   - prints the current exercise's hint
  clear  - clears the screen
  quit   - quits watch mode
  !<cmd> - executes a command, like `!rustc --explain E0381`
  help   - displays this help message

Watch mode automatically re-evaluates the current exercise
when you edit a file's contents."""


class ExerciseNotFound(LookupError):
    """Raised when no exercise matches the requested name."""


class WatchStatus(enum.Enum):
    """How watch mode ended."""

    FINISHED = enum.auto()
    UNFINISHED = enum.auto()


@dataclass
class ExerciseResult:
    """Outcome of checking one exercise."""

    name: str
    result: bool


@dataclass
class ExerciseStatistics:
    """Totals of a full check run."""

    total_exercations: int = 0
    total_succeeds: int = 0
    total_failures: int = 0
    total_time: int = 0


@dataclass
class ExerciseCheckList:
    """Report written by the cicvverify command."""

    exercises: list[ExerciseResult] = field(default_factory=list)
    user_name: str | None = None
    statistics: ExerciseStatistics = field(default_factory=ExerciseStatistics)

    def to_json(self) -> str:
        """Serialize to pretty-printed JSON."""
        return json.dumps(asdict(self), indent=2, ensure_ascii=False)


def find_exercise(name: str, exercises: Sequence[Exercise]) -> Exercise:
    """Find an exercise by name; "next" is the first one not yet done."""
    if name == "next":
        found = next((e for e in exercises if not e.looks_done()), None)
        if found is None:
            raise ExerciseNotFound(
                "🎉 Congratulations! You have done all the exercises!\n"
                "🔚 There are no more exercises to do next!"
            )
        return found
    found = next((e for e in exercises if e.name == name), None)
    if found is None:
        raise ExerciseNotFound(f"No exercise found for '{name}'!")
    return found


def rustc_exists() -> bool:
    """Whether `rustc --version` can be run successfully."""
    try:
        result = subprocess.run(["rustc", "--version"], stdout=subprocess.DEVNULL)
    except OSError:
        return False
    return result.returncode == 0


def list_exercises(
    exercises: Sequence[Exercise],
    paths: bool = False,
    names: bool = False,
    pattern: str | None = None,
    unsolved: bool = False,
    solved: bool = False,
) -> int:
    """Print the selected exercises and a progress line; return how many are done."""
    if not paths and not names:
        print(f"{'Name':<17}\t{'Path':<46}\t{'Status':<7}")
    filters = [f for f in (pattern or "").lower().split(",") if f.strip()]
    done_count = 0
    for exercise in exercises:
        fname = str(exercise.path)
        matches = any(f in exercise.name or f in fname for f in filters)
        done = exercise.looks_done()
        if done:
            done_count += 1
        status = "Done" if done else "Pending"
        wanted = (done and solved) or (not done and unsolved) or (not solved and not unsolved)
        if wanted and (matches or pattern is None):
            if paths:
                line = fname
            elif names:
                line = exercise.name
            else:
                line = f"{exercise.name:<17}\t{fname:<46}\t{status:<7}"
            sys.stdout.write(line + "\n")
    total = len(exercises)
    percentage = done_count / total * 100 if total else math.nan
    print(f"Progress: You completed {done_count} / {total} exercises ({percentage:.1f} %).")
    return done_count


def _now() -> int:
    return int(time.time())


def cicv_verify(
    exercises: Sequence[Exercise],
    verbose: bool = True,
    output_path: str | os.PathLike = CHECK_RESULT_PATH,
) -> ExerciseCheckList:
    """Run every exercise, report progress and write a JSON summary."""
    started = _now()
    total = len(exercises)
    check_list = ExerciseCheckList(statistics=ExerciseStatistics(total_exercations=total))
    stats = check_list.statistics

    for exercise in exercises:
        exercise_started = _now()
        try:
            run(exercise, verbose)
            passed = True
        except ExerciseFailed:
            passed = False
        if passed:
            stats.total_succeeds += 1
            print(f"{exercise.name}执行成功")
        else:
            print(f"{exercise.name}执行失败")
        print(f"总的题目数: {total}")
        print(f"当前做正确的题目数: {stats.total_succeeds}")
        print(f"当前修改试卷耗时: {_now() - exercise_started} s")
        check_list.exercises.append(ExerciseResult(name=exercise.name, result=passed))
        if not passed:
            stats.total_failures += 1

    stats.total_time = _now() - started
    print(
        "===============================试卷批改完成,总耗时: "
        f"{stats.total_time} s; =================================="
    )
    Path(output_path).write_text(check_list.to_json(), encoding="utf-8")
    return check_list


def handle_shell_command(line: str, failed_hint: str | None) -> bool:
    """Carry out one watch-mode command; return True when the user asks to quit."""
    command = line.strip()
    if command == "hint":
        if failed_hint is not None:
            print(failed_hint)
    elif command == "clear":
        print("\x1b[2J\x1b[1;1H")
    elif command == "quit":
        print("Bye!")
        return True
    elif command == "help":
        print(SHELL_HELP)
    elif command.startswith("!"):
        cmd = command[1:]
        parts = cmd.split()
        if not parts:
            print("no command provided")
        else:
            try:
                subprocess.run(parts)
            except OSError as err:
                print(f"failed to execute command `{cmd}`: {err}")
    else:
        print(f"unknown command: {command}")
    return False


@dataclass
class _WatchState:
    hint: str | None
    should_quit: threading.Event = field(default_factory=threading.Event)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, events: queue.Queue[Path]):
        super().__init__()
        self._events = events

    def _push(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._events.put(Path(os.fsdecode(event.src_path)))

    def on_created(self, event: FileSystemEvent) -> None:
        self._push(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._push(event)


def _clear_screen() -> None:
    print("\x1bc")


def _spawn_watch_shell(state: _WatchState) -> None:
    print(
        "Welcome to watch mode! You can type 'help' to get an overview "
        "of the commands you can use here."
    )

    def loop() -> None:
        while True:
            try:
                line = sys.stdin.readline()
            except (OSError, UnicodeDecodeError) as err:
                print(f"error reading command: {err}")
                continue
            if not line:
                return
            if handle_shell_command(line, state.hint):
                state.should_quit.set()

    threading.Thread(target=loop, daemon=True).start()


def _next_batch(events: queue.Queue[Path]) -> list[Path]:
    """Wait up to a second for a change, then gather changes until things go quiet."""
    try:
        batch = [events.get(timeout=DEBOUNCE_SECONDS)]
    except queue.Empty:
        return []
    while True:
        try:
            batch.append(events.get(timeout=DEBOUNCE_SECONDS))
        except queue.Empty:
            return list(dict.fromkeys(batch))


def _ends_with(full: Path, tail: Path) -> bool:
    tail_parts = Path(tail).parts
    if not tail_parts or len(tail_parts) > len(full.parts):
        return False
    return full.parts[-len(tail_parts):] == tail_parts


def _pending_after_change(filepath: Path, exercises: Sequence[Exercise]) -> Iterator[Exercise]:
    current = next((e for e in exercises if _ends_with(filepath, e.path)), None)
    rest = (e for e in exercises if not e.looks_done() and not _ends_with(filepath, e.path))
    return itertools.chain([current] if current is not None else [], rest)


def watch(
    exercises: Sequence[Exercise], verbose: bool = False, success_hints: bool = False
) -> WatchStatus:
    """Verify, then re-verify whenever an exercise file changes until done or quit."""
    events: queue.Queue[Path] = queue.Queue()
    observer = Observer()
    observer.schedule(_ChangeHandler(events), EXERCISES_DIR, recursive=True)
    observer.start()
    try:
        _clear_screen()
        try:
            verify(exercises, (0, len(exercises)), verbose, success_hints)
        except VerificationFailed as err:
            state = _WatchState(hint=err.exercise.hint)
        else:
            return WatchStatus.FINISHED

        _spawn_watch_shell(state)
        while not state.should_quit.is_set():
            for path in _next_batch(events):
                if path.suffix != ".rs" or not path.exists():
                    continue
                filepath = path.resolve()
                num_done = sum(1 for e in exercises if e.looks_done())
                _clear_screen()
                try:
                    verify(
                        _pending_after_change(filepath, exercises),
                        (num_done, len(exercises)),
                        verbose,
                        success_hints,
                    )
                except VerificationFailed as err:
                    state.hint = err.exercise.hint
                else:
                    return WatchStatus.FINISHED
        return WatchStatus.UNFINISHED
    finally:
        observer.stop()
        observer.join()


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="drillrunner",
        description="A collection of small exercises to get you used to writing and reading Rust code",
    )
    parser.add_argument("--nocapture", action="store_true",
                        help="show outputs from the test exercises")
    parser.add_argument("-v", "--version", action="store_true",
                        help="show the executable version")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("verify", help="Verifies all exercises according to the recommended order")
    watch_parser = sub.add_parser("watch", help="Reruns `verify` when files were edited")
    watch_parser.add_argument("--success-hints", action="store_true",
                              help="show hints on success")
    for name, text in (
        ("run", "Runs/Tests a single exercise"),
        ("reset", 'Resets a single exercise using "git stash -- <filename>"'),
        ("hint", "Returns a hint for the given exercise"),
    ):
        command = sub.add_parser(name, help=text)
        command.add_argument("name", nargs="?", help="the name of the exercise")
    list_parser = sub.add_parser("list", help="Lists the available exercises")
    list_parser.add_argument("-p", "--paths", action="store_true",
                             help="show only the paths of the exercises")
    list_parser.add_argument("-n", "--names", action="store_true",
                             help="show only the names of the exercises")
    list_parser.add_argument("-f", "--filter",
                             help="comma separated patterns to match exercise names")
    list_parser.add_argument("-u", "--unsolved", action="store_true",
                             help="display only exercises not yet solved")
    list_parser.add_argument("-s", "--solved", action="store_true",
                             help="display only exercises that have been solved")
    sub.add_parser("lsp", help="Enable rust-analyzer for exercises")
    sub.add_parser("cicvverify", help="cicvverify")
    return parser


def _lsp() -> int:
    project = RustAnalyzerProject()
    try:
        project.get_sysroot_src()
    except OSError:
        print("Couldn't find toolchain path, do you have `rustc` installed?", file=sys.stderr)
        return 1
    try:
        project.exercises_to_json()
    except OSError:
        print("Couldn't parse exercise files", file=sys.stderr)
        return 1
    if not project.crates:
        print("Failed find any exercises, make sure you're in the exercises folder")
        return 0
    try:
        project.write_to_disk()
    except OSError:
        print("Failed to write rust-project.json to disk for rust-analyzer")
        return 0
    print("Successfully generated rust-project.json")
    print("rust-analyzer will now parse exercises, restart your language server or editor")
    return 0


def _watch(exercises: Sequence[Exercise], verbose: bool, success_hints: bool) -> int:
    try:
        status = watch(exercises, verbose, success_hints)
    except OSError as err:
        print(f"Error: Could not watch your progress. Error message was {err!r}.")
        print(
            "Most likely you've run out of disk space or your 'inotify limit' has been reached."
        )
        return 1
    if status is WatchStatus.FINISHED:
        emoji = "★" if no_emoji() else "🎉"
        print(f"{emoji} All exercises completed! {emoji}")
        print(f"\n{FINISH_LINE}\n")
    else:
        print("We hope you're enjoying learning about Rust!")
        print(
            "If you want to continue working on the exercises at a later point, "
            "you can simply run `drillrunner watch` again"
        )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    args = _parser().parse_args(argv)

    if args.command in ("run", "reset", "hint") and args.name is None:
        print("Required positional arguments not provided:\n    name", file=sys.stderr)
        return 1

    if args.version:
        print(f"v{VERSION}")
        return 0

    if args.command is None:
        print(f"\n{WELCOME}\n")

    if not Path(INFO_FILE).exists():
        print(f"{sys.argv[0]} must be run from the directory that holds {INFO_FILE}")
        print("Try `cd` into the exercises directory!")
        return 1

    if not rustc_exists():
        print("We cannot find `rustc`.")
        print("Try running `rustc --version` to diagnose your problem.")
        print("For instructions on how to install Rust, check the README.")
        return 1

    exercises = load_exercises(INFO_FILE)
    verbose = args.nocapture

    match args.command:
        case None:
            print(f"{DEFAULT_OUT}\n")
            return 0
        case "list":
            try:
                list_exercises(
                    exercises, args.paths, args.names, args.filter, args.unsolved, args.solved
                )
            except BrokenPipeError:
                return 0
            except OSError:
                return 1
            return 0
        case "run" | "reset" | "hint":
            try:
                exercise = find_exercise(args.name, exercises)
            except ExerciseNotFound as err:
                print(err)
                return 1
            if args.command == "hint":
                print(exercise.hint)
                return 0
            try:
                if args.command == "run":
                    run(exercise, verbose)
                else:
                    reset(exercise)
            except ExerciseFailed:
                return 1
            return 0
        case "verify":
            try:
                verify(exercises, (0, len(exercises)), verbose, False)
            except ExerciseFailed:
                return 1
            return 0
        case "cicvverify":
            cicv_verify(exercises, verbose=True)
            return 0
        case "lsp":
            return _lsp()
        case "watch":
            return _watch(exercises, verbose, args.success_hints)
    return 1


if __name__ == "__main__":
    sys.exit(main())