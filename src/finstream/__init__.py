"""Subscription management API for finstream users.

Verifies bearer tokens per audience context, stores each caller's
subscription flag and exposes it over a small JSON API.
"""

__version__ = "0.1.0"
