"""Package entrypoint – allows `python -m chartstream …`."""

from __future__ import annotations

from .cli import run


def main() -> None:  # noqa: D401 – CLI entrypoint
    """Delegate to :func:`chartstream.cli.run` so the CLI lives in one place."""
    run()


if __name__ == "__main__":  # pragma: no cover – direct invocation
    main()
