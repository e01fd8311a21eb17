# drillrunner

drillrunner drives a directory of small Rust exercises. It compiles each one,
runs it or runs its tests, and tells you which ones are still waiting for you.
An exercise counts as pending for as long as its source holds an
`// I AM NOT DONE` comment. When you remove the comment, the runner moves on
to the next exercise.

`rustc` must be on your `PATH`. Clippy and build-script exercises also need
`cargo`, and `reset` needs `git`.

## Installation

```
pip install .
```

## Usage

Run every command from the directory that holds `info.toml`. Every command
other than `-v` exits with status 1 if that file is missing or `rustc` cannot
be run. The file lists the exercises in order under `[[exercises]]`. Each
entry has a `name`, a `path`, a `mode` and a `hint`. The mode is one of
`compile`, `test`, `clippy` or `buildscript`.

```
drillrunner                  # show the welcome text and exit
drillrunner -v               # print the version
drillrunner verify           # check every exercise in order, stop at the first failure
drillrunner watch            # verify, then re-verify whenever a file under exercises/ changes
drillrunner run NAME         # compile and run a single exercise ("next" picks the first pending one)
drillrunner hint NAME        # print the hint for an exercise
drillrunner reset NAME       # run "git stash -- <path>" on the exercise file
drillrunner list             # show every exercise with its status and your progress
drillrunner lsp              # write rust-project.json so rust-analyzer understands the exercises
drillrunner cicvverify       # run every exercise and write .github/result/check_result.json
```

Add `--nocapture` before the subcommand to show the output of test exercises.
`run`, `hint` and `reset` exit with status 1 when no name is given or no
exercise matches it. `run` and `verify` exit with status 1 when an exercise
fails.

`list` accepts these options:

- `-p` / `--paths` prints only the paths.
- `-n` / `--names` prints only the names.
- `-f` / `--filter PATTERNS` keeps exercises whose name or path contains one of
  the comma-separated patterns.
- `-u` / `--unsolved` shows only pending exercises.
- `-s` / `--solved` shows only finished exercises.

`watch --success-hints` also shows an exercise's hint once it compiles.

`lsp` takes the standard library sources from the `RUST_SRC_PATH` environment
variable if it is set. Otherwise it asks `rustc --print sysroot`. It adds one
crate for every `.rs` file below `./exercises`.

`cicvverify` runs every exercise with its output shown and prints a running
tally. It then writes a JSON report with the result of each exercise and the
totals (`total_exercations`, `total_succeeds`, `total_failures`,
`total_time` in seconds).

### Watch mode

While watch mode is running you can type these commands:

- `hint` prints the hint for the exercise that is currently failing.
- `clear` clears the screen.
- `quit` leaves watch mode.
- `!<cmd>` runs a command, for example `!rustc --explain E0381`.
- `help` lists these commands.

Set the `NO_EMOJI` environment variable to print plain symbols in place of
emoji.

## Using it from Python

- `drillrunner.exercise.load_exercises(path)` reads `info.toml` into a list of
  `Exercise` objects.
- `Exercise.state()` returns a `State`. Its `done` attribute is true when the
  marker is gone. Otherwise `context` holds the `ContextLine`s around the
  marker.
- `Exercise.compile()` returns a `CompiledExercise` or raises
  `CompilationError`. The compiled exercise is a context manager. Its `run()`
  returns an `ExerciseOutput` with `stdout`, `stderr` and `success`.
- `drillrunner.verify.verify(exercises, (done, total))` raises
  `VerificationFailed` with the first unfinished exercise.
- `drillrunner.run.run(exercise)` raises `ExerciseFailed` if the exercise does
  not compile or run cleanly.
- `drillrunner.cli.main(argv)` runs the command line and returns the exit
  status.

## What it does not do

drillrunner ships no exercises and no `info.toml`. You supply both. `cicvverify`
does not create the `.github/result` directory, so that directory must exist
before you run it.