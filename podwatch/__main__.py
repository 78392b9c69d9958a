"""Entry point for `python -m podwatch`.

Usage:
    PODWATCH_NAMESPACE=default python -m podwatch
"""

from __future__ import annotations

import asyncio

from podwatch.app import main

asyncio.run(main())
