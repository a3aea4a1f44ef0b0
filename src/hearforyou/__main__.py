"""Allow `python -m hearforyou`."""

from hearforyou.cli import app

if __name__ == "__main__":
    app()
