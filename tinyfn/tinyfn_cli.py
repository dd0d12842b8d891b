import os
import sys
from pathlib import Path

from tinyfn.tinyfn_runtime import ScriptRunner

DEBUG_ENV = "TINYFN_DEBUG"


def debug_enabled(environ=None) -> bool:
    value = (os.environ if environ is None else environ).get(DEBUG_ENV, "")
    return value not in ("", "0")


def print_effects(result, stdout=None, stderr=None):
    """Writes stdout/debug side effects of a run to the matching streams."""
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    for effect in result.side_effects:
        topics = effect.get('topics')
        if topics == ['stdout']:
            print(effect.get('message', ''), file=stdout)
        elif topics == ['debug']:
            print(effect.get('message', ''), file=stderr)


def run_source(runner: ScriptRunner, source: str, name: str, path=None) -> int:
    """Run a whole program non-interactively and return the exit status."""
    result = runner.handle_script(source, name=name, path=path)
    print_effects(result)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return 1
    return 0


def repl(runner: ScriptRunner) -> int:
    print("tinyfn REPL")
    print("Type 'exit' or press Ctrl+D to quit.")
    runner.source_dir = str(Path.cwd())
    while True:
        try:
            line = input(">> ").strip()
        except EOFError:
            print("\nExiting.")
            return 0
        if not line:
            continue
        if line == "exit":
            return 0
        result = runner.handle_script(line, name="<repl>")
        print_effects(result)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue
        if result.value is not None:
            print(runner.printer.pformat(result.value))


def main(argv=None) -> int:
    """Run a script file when provided, stdin when piped, otherwise the REPL."""
    argv = sys.argv[1:] if argv is None else argv
    runner = ScriptRunner(debug=debug_enabled())

    if argv and not argv[0].startswith("-"):
        p = Path(argv[0])
        try:
            source = p.read_text(encoding="utf-8")
        except FileNotFoundError:
            print(f"Error: file not found: {argv[0]}", file=sys.stderr)
            return 1
        runner.source_dir = str(p.parent.resolve())
        return run_source(runner, source, name=str(p), path=str(p))

    if not sys.stdin.isatty():
        runner.source_dir = str(Path.cwd())
        return run_source(runner, sys.stdin.read(), name="<stdin>")

    try:
        return repl(runner)
    except KeyboardInterrupt:
        print("\nExiting.")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
