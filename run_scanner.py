#!/usr/bin/env python3
"""
Flash arbitrage scanner runner.

Usage:
    python3 run_scanner.py --config config/polygon.yaml
    python3 run_scanner.py --config config/polygon.yaml --once
"""

import sys

from flash_arbitrage.cli import main

if __name__ == "__main__":
    sys.exit(main())
