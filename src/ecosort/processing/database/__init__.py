# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""SQLite raw telemetry log."""

from .sqlite_client import SQLiteClient
from .raw_store import RawTelemetryStore

__all__ = ["SQLiteClient", "RawTelemetryStore"]
