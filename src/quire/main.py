"""Unified entry point for Quire."""

from quire.interfaces.cli.app import run_cli


def main():
    """Main entry point: dispatch to the CLI."""
    run_cli()


if __name__ == "__main__":
    main()
