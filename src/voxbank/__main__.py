"""Entry point for running voxbank as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the voxbank CLI application."""
    app()


if __name__ == "__main__":
    main()
