#!/usr/bin/env python3
"""
main.py - Quick-start entry point.

    python main.py generate my_photo.jpg --shape hexagon --matching lab

Or use the full CLI:

    python -m mystery_mosaic.cli --help
    python -m mystery_mosaic.cli render output/my_photo_mosaic.json --mode split
"""

from mystery_mosaic.cli import app

if __name__ == "__main__":
    app()
