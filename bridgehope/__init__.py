# SPDX-License-Identifier: Apache-2.0

"""
Bridge Hope API - donation distribution workflow between donors, NGOs and orphanages.
"""

__version__ = "1.0.0"
