from __future__ import annotations
import json
import logging
import re
from typing import Optional
import typer
from rich.console import Console
from rich.logging import RichHandler
from .config import WatchConfig, load_config
from .watcher import Action, Item, PROBE_POLICIES, RotationDetected, Watcher

app = typer.Typer(help="logwatcher - follow a log file across rotations")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main() -> None:
    """
    Follow growing log files (tail -F) without losing or duplicating lines across rotations.
    """


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _emit_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False), flush=True)


class _FollowPrinter:
    """
    Consumer for `follow`: prints events and counts them.
    """
    def __init__(self, *, json_out: bool, pattern: Optional[re.Pattern], max_lines: Optional[int]) -> None:
        self.json_out = json_out
        self.pattern = pattern
        self.max_lines = max_lines
        self.lines = 0
        self.rotations = 0
        self.errors = 0

    def __call__(self, item: Item) -> Action:
        if isinstance(item, OSError):
            self.errors += 1
            if self.json_out:
                _emit_json({"event": "error", "error": str(item)})
            else:
                console.print(f"[bold red]Error:[/bold red] {item}", style="red")
            return Action.CONTINUE

        if isinstance(item, RotationDetected):
            self.rotations += 1
            if self.json_out:
                _emit_json({"event": "rotation", "path": item.path})
            else:
                console.print(f"[yellow]--- {item.path} was rotated, following the new file ---[/yellow]")
            return Action.CONTINUE

        if self.pattern and not self.pattern.search(item.content):
            return Action.CONTINUE
        self.lines += 1
        if self.json_out:
            _emit_json({"event": "line", "content": item.content})
        else:
            console.print(item.content, markup=False, highlight=False, soft_wrap=True)

        if self.max_lines is not None and self.lines >= self.max_lines:
            return Action.STOP
        return Action.CONTINUE


@app.command()
def follow(
    file: str = typer.Option(..., "--file", "-f", help="Path to a log file to follow (tail -F)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to watcher YAML config"),
    json_out: bool = typer.Option(False, "--json", help="Output JSON lines (one event per line)"),
    grep: Optional[str] = typer.Option(None, "--grep", "-g", help="Only print lines matching this regex"),
    backoff: Optional[float] = typer.Option(None, "--backoff", help="Seconds to wait before re-checking the file"),
    probe_errors: Optional[str] = typer.Option(
        None, "--probe-errors", help=f"What to do when reopening fails: {' or '.join(PROBE_POLICIES)}"
    ),
    max_lines: Optional[int] = typer.Option(None, "--max-lines", "-n", help="Stop after printing N lines"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log watcher activity to stderr"),
):
    """
    Print lines appended to FILE, surviving log rotation.
    """
    _setup_logging(verbose)

    try:
        cfg = load_config(config) if config else WatchConfig()
        if backoff is not None:
            if backoff <= 0:
                raise ValueError(f"--backoff must be positive, got {backoff}")
            cfg.backoff_seconds = backoff
        if probe_errors is not None:
            if probe_errors not in PROBE_POLICIES:
                raise ValueError(
                    f"--probe-errors must be one of {', '.join(PROBE_POLICIES)}, got {probe_errors!r}"
                )
            cfg.probe_errors = probe_errors
        pattern = re.compile(grep) if grep else None
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        raise typer.Exit(1)
    except re.error as e:
        console.print(f"[bold red]Error:[/bold red] Invalid --grep regex: {e}", style="red")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}", style="red")
        raise typer.Exit(1)

    try:
        watcher = Watcher.register(
            file,
            backoff_seconds=cfg.backoff_seconds,
            probe_errors=cfg.probe_errors,
            encoding=cfg.encoding,
        )
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] Cannot open {file}: {e}", style="red")
        raise typer.Exit(1)

    printer = _FollowPrinter(json_out=json_out, pattern=pattern, max_lines=max_lines)
    if not json_out:
        console.print(f"[green]Following[/green] {file}  (Ctrl+C to stop)")

    try:
        watcher.watch(printer)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.close()

    if not json_out:
        console.print(
            f"[yellow]Stopped.[/yellow] lines={printer.lines} "
            f"rotations={printer.rotations} errors={printer.errors}"
        )


if __name__ == "__main__":
    app()
