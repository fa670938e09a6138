# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the authentication guards and the error handlers that
turn exceptions into failure envelopes for the Bridge Hope API.
"""
