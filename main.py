#!/usr/bin/env python3
"""
Hearthlog - Main Entry Point

Usage:
    python main.py                      # track using the saved config
    python main.py --game-dir "C:/Program Files (x86)/Hearthstone"
    python main.py --verbose --stats
"""

import sys
from pathlib import Path

# Add src directory to Python path when running from a checkout
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

# Import and run the main application
from hearthlog.app import main

if __name__ == "__main__":
    sys.exit(main())
