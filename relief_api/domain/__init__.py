# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the relief coordination platform.

This package contains the matching and logistics workflows. Workflows reach
storage only through the Persistence interface and report activity through
the ActivityLogger, so they are testable against the in-memory backend.
"""
