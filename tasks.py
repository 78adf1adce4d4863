"""Invoke tasks for development workflows.

Every task shells out to the `uv` CLI so environment sync, tests, linting and
type checks run against the same locked environment.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent


def _run_uv(ctx: Context, args: Sequence[str], *, echo: bool = True) -> None:
    """Run ``uv`` with ``args`` from the project root.

    Args:
        ctx: Invoke execution context.
        args: Arguments appended after the `uv` executable.
        echo: Whether to echo the command before running it.
    """
    with ctx.cd(str(PROJECT_ROOT)):
        ctx.run(shlex.join(("uv", *args)), echo=echo, pty=True)


@task
def sync(ctx: Context, dev: bool = True) -> None:
    """Synchronize the virtual environment, including dev extras by default."""
    args = ["sync"]
    if dev:
        args.extend(["--extra", "dev"])
    _run_uv(ctx, args)


@task(
    help={
        "k": "pytest -k expression for test selection.",
        "path": "Path or module to test (defaults to tests/).",
        "options": "Additional CLI flags forwarded verbatim to pytest.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite."""
    args: list[str] = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    if options:
        args.extend(shlex.split(options))
    args.append(path)
    _run_uv(ctx, args)


@task(help={"fix": "Apply auto-fixes where possible (ruff --fix)."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Check formatting and lint rules with Ruff."""
    _run_uv(ctx, ["run", "ruff", "format", "--check", "src", "tests"])
    args = ["run", "ruff", "check", "src", "tests"]
    if fix:
        args.append("--fix")
    _run_uv(ctx, args)


@task
def mypy(ctx: Context) -> None:
    """Type-check the package with MyPy."""
    _run_uv(ctx, ["run", "mypy", "src"])


@task(help={"library": "Library directory to scan.", "json": "Emit JSON output."})
def scan(ctx: Context, library: str, json: bool = False) -> None:
    """Scan a library directory with the development build of the CLI."""
    args = ["run", "modelshelf", "scan", library]
    if json:
        args.append("--json")
    _run_uv(ctx, args)


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks and tests in the same order as CI."""
    ctx.invoke(lint)
    ctx.invoke(mypy)
    ctx.invoke(tests)


namespace = Collection(sync, tests, lint, mypy, scan, ci)
