#!/usr/bin/env python3
"""Convenience runner for the running companion CLI.

Usage:
    python run.py simulate fixes.csv --route route.json --target-pace 5:30
"""
import logging
import sys

from run_companion.main import main

if __name__ == "__main__":
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    sys.exit(main())
