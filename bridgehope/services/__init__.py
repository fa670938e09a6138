# SPDX-License-Identifier: Apache-2.0

"""
Service layer: store access, the distribution engine and response formatting.
"""
