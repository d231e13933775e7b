"""Allow ``python -m reflens``."""

from reflens.cli import app

if __name__ == "__main__":
    app()
