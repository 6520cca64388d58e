# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Relief coordination API: help requests, support offers and logistics tracking.
"""

__version__ = "1.0.0"
