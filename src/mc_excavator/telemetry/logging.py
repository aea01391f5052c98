"""Console logging setup shared by the CLI and the runtime."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

_HANDLER_NAME = "mc_excavator.rich"


def configure_logging(level: str | int = "INFO") -> None:
    """Install a RichHandler on the root logger; calling again only adjusts the level."""
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    if any(handler.get_name() == _HANDLER_NAME for handler in root.handlers):
        return

    handler = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root.addHandler(handler)
