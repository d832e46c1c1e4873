"""Allow running taskflow as ``python -m taskflow``."""

from .cli.main import cli

if __name__ == '__main__':
    cli()
