# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Minute rollups and windowed analytics.

Provides:
- DuckDB rollup store (last-value-wins per robot minute)
- Windowed query engine reconciling rollups with the raw log
"""

from .rollup_store import RollupStore, StoreNotConnectedError
from .queries import QueryError, QueryWindow, WindowedQueryEngine

__all__ = [
    'RollupStore',
    'StoreNotConnectedError',
    'QueryError',
    'QueryWindow',
    'WindowedQueryEngine',
]
