"""CLI entrypoint for set-task-retries."""

import logging
import sys
from pathlib import Path

import rich_click as click

from set_task_retries import __version__
from set_task_retries.config import Settings
from set_task_retries.connection import ConfigurationError
from set_task_retries.controllers import RetryCliController, SetRetriesCommand
from set_task_retries.http.client import QrsError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = RetryCliController()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class RetryCommand(click.RichCommand):
    """Reports every argument parsing error as a configuration error (exit 1)."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except ConfigurationError:
            raise
        except click.UsageError as error:
            raise ConfigurationError(error.format_message(), ctx=ctx) from error


@click.command(cls=RetryCommand)
@click.version_option(version=__version__, prog_name="set-task-retries")
@click.option(
    "--ntlm",
    "ntlm_url",
    metavar="URL",
    default=None,
    help="Connect through the proxy as the current Windows user (NTLM).",
)
@click.option(
    "--direct",
    nargs=4,
    metavar="URL PORT USERDIR USERID",
    default=None,
    help="Connect straight to the repository port with client certificates.",
)
@click.option(
    "--certs",
    type=click.Path(path_type=Path),
    default=None,
    help=(
        "Directory with the PEM export (client.pem, client_key.pem); PFX exports are "
        "not read. Defaults to the local export."
    ),
)
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=None,
    help="Target retry count. Defaults to SET_TASK_RETRIES_DEFAULT_RETRIES (0).",
)
@click.option(
    "--apply",
    is_flag=True,
    default=False,
    help="Write changes. Without it the run only reports.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def set_task_retries(  # noqa: PLR0913
    ctx: click.Context,
    ntlm_url: str | None,
    direct: tuple[str, str, str, str] | None,
    certs: Path | None,
    retries: int | None,
    apply: bool,
    verbose: bool,
) -> None:
    """List reload tasks and normalize their retry count.

    ```
    set-task-retries --ntlm   <url> [--retries <n>] [--apply]
    set-task-retries --direct <url> <port> <userDir> <userId> [--certs <path>] [--retries <n>] [--apply]
    ```

    Example: `set-task-retries --ntlm https://my.server.url --retries 3 --apply`
    """

    try:
        settings = Settings.from_env()
        settings.validate()
    except ValueError as error:
        raise ConfigurationError(str(error), ctx=ctx) from error
    _configure_logging(settings.log_level, verbose=verbose)

    command = SetRetriesCommand(
        ntlm_url=ntlm_url,
        direct=direct,
        certs=certs,
        retries=retries,
        apply=apply,
    )
    try:
        CONTROLLER.run(command, settings, click.echo)
    except ConfigurationError as error:
        if error.ctx is None:
            error.ctx = ctx
        raise
    except QrsError as error:
        raise click.ClickException(str(error)) from error


def _configure_logging(level_name: str, *, verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.getLevelName(level_name)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":  # pragma: no cover
    set_task_retries()
