"""
Adapters - Public entry points.

    BoxUnlockClient - coordinator wired to the REST backend
    main            - ``box-unlock`` command line
"""

from box_unlock.adapters.api import BoxUnlockClient
from box_unlock.adapters.cli import main

__all__ = ["BoxUnlockClient", "main"]
