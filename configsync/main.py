"""Operator entry point."""

from __future__ import annotations

import logging
import sys

import kopf

from configsync.config import Settings

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("kubernetes.client.rest").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("kopf.objects").setLevel(logging.INFO if debug else logging.WARNING)


def run(settings: Settings) -> None:
    """Run the operator until it is interrupted."""
    settings.validate_runtime()
    _configure_logging(settings.debug)

    # Importing the module registers the kopf handlers
    import configsync.operator  # noqa: F401

    if settings.namespaces:
        logger.info("Watching namespaces: %s", ", ".join(settings.namespaces))
    else:
        logger.info("Watching all namespaces")
    kopf.run(
        standalone=True,
        namespaces=settings.namespaces,
        clusterwide=not settings.namespaces,
        memo=kopf.Memo(app_settings=settings),
    )


def cli_entry() -> None:
    """Console script entry point."""
    run(Settings())


if __name__ == "__main__":
    cli_entry()
