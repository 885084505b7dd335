#!/usr/bin/env python3
# entrypoints/entrypoint_payout_scheduler.py
"""
Контейнер планировщика еженедельных выплат.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from main import main  # noqa: E402


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main("payout_scheduler")))
    except KeyboardInterrupt:
        sys.exit(0)
