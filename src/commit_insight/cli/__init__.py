"""CLI entry point: registers all subcommands."""

import typer

app = typer.Typer(
    name="commit-insight",
    help="Commit Insight - commit quality analysis with cached AI reviews",
    add_completion=False,
    rich_markup_mode="rich",
)


def main() -> None:
    app()


# Import subcommands to register them
from .quality import categorize as _categorize, quality as _quality  # noqa: F401, E402
from .trend import trend as _trend, history as _history  # noqa: F401, E402
from .suggest import suggest as _suggest, commits as _commits  # noqa: F401, E402
from .summary import summary as _summary, tasks as _tasks  # noqa: F401, E402
from .cache import cache_info as _cache_info, cache_clear as _cache_clear, cache_cleanup as _cache_cleanup  # noqa: F401, E402
