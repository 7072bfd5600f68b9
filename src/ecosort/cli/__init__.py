# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
EcoSort CLI - query fleet telemetry and send robot commands from the terminal.
"""

from .. import __version__

__all__ = ["__version__"]
