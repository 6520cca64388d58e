# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the bearer token authentication and the problem+json
error handling of the relief coordination API.
"""
