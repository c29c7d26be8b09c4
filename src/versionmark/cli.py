"""
versionmark CLI: versionmark vMAJOR.MINOR.PATCH

Bumps the version number by creating a couple of commits, tags the
release and prepares a backmerge branch. Nothing is pushed; the
instructions for doing so are printed at the end.
"""
import sys
from pathlib import Path

import click

from versionmark.config.settings import load_settings, resolve_config_path
from versionmark.core.exceptions import ReleaseError
from versionmark.core.structured_logger import configure_logging, get_logger
from versionmark.release.pipeline import ReleasePipeline
from versionmark.release.version import parse_version
from versionmark.vcs.git_impl import open_repository

logger = get_logger("CLI")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("version")
def cli(version: str) -> None:
    """Release VERSION (vMAJOR.MINOR.PATCH) from the current branch.

    Configuration is read from $VERSIONMARK_CONFIG or versionmark.yaml in
    the repository root, with VERSIONMARK_* environment overrides.
    """
    configure_logging()
    try:
        parse_version(version)
        vcs = open_repository(Path.cwd())
        settings = load_settings(resolve_config_path(vcs.root))
        configure_logging(settings.logging.level, settings.logging.format)
        result = ReleasePipeline(vcs, settings).run(version)
    except ReleaseError as e:
        logger.debug("Release failed", error_type=type(e).__name__, error_code=int(e.error_code), details=e.details)
        click.echo(e.user_message(), err=True)
        sys.exit(e.exit_code)

    click.echo("")
    click.echo(result.next_steps())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
