# src/mmkrate/__main__.py
"""Module entry point so the bot can be started with ``python -m mmkrate``."""

from mmkrate.app import main

if __name__ == "__main__":
    main()
