"""Project tasks."""

from __future__ import annotations

from duty import duty  # pyright: ignore[reportMissingImports]


PACKAGE_NAME = "cms_sync"


@duty(capture=False)
def clean(ctx):
    """Clean all files from the Git directory except checked-in files."""
    ctx.run("git clean -dfX")


@duty(capture=False)
def update(ctx):
    """Update all environment packages."""
    ctx.run("uv lock --upgrade")
    ctx.run("uv sync --all-extras")


@duty(capture=False)
def test(ctx, *args: str):
    """Run the test suite."""
    args_str = " " + " ".join(args) if args else ""
    ctx.run(f"uv run pytest{args_str}")


@duty(capture=False)
def lint(ctx, filepath: str | None = None):  # noqa: D417
    """Lint the code and fix issues if possible.

    Args:
        filepath: Optional path to a specific file to lint.
                  If not provided, lints the entire project.
    """
    target = filepath or "."
    ctx.run(f"uv run ruff check --fix --unsafe-fixes {target}")
    ctx.run(f"uv run ruff format {target}")
    if not filepath or filepath.startswith("src/"):
        ctx.run(f"uv run mypy {filepath or f'src/{PACKAGE_NAME}'}")


@duty(capture=False)
def lint_check(ctx, filepath: str | None = None):  # noqa: D417
    """Lint the code (check only, no fixes).

    Args:
        filepath: Optional path to a specific file to lint.
                  If not provided, lints the entire project.
    """
    target = filepath or "."
    ctx.run(f"uv run ruff check {target}")
    ctx.run(f"uv run ruff format --check {target}")
    if not filepath or filepath.startswith("src/"):
        ctx.run(f"uv run mypy {filepath or f'src/{PACKAGE_NAME}'}")
