"""Module entry point for `python -m synctape.cli`."""

if __name__ == "__main__":  # pragma: no cover (invocation driven)
    from synctape.cli import cli

    cli()
