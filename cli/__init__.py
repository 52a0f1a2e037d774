"""Command-line tools for the environmental measurement store.

The Typer application lives in ``cli.app``; it is not re-exported here so that
``cli.app`` keeps resolving to the module.
"""

__all__: list[str] = []
