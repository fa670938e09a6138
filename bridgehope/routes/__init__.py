# SPDX-License-Identifier: Apache-2.0

"""
API blueprints.
"""

from .donations import donations_bp
from .ngos import ngos_bp
from .orphanages import orphanages_bp

__all__ = ["donations_bp", "ngos_bp", "orphanages_bp"]
