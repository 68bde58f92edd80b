"""
cs2replay CLI Entry Point

Allows running the package as a module: python -m cs2replay
"""

from cs2replay.cli import main

if __name__ == "__main__":
    main()
