# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""Command modules for the CLI."""

from . import fleet
from . import robot
from . import serve

__all__ = ["fleet", "robot", "serve"]
