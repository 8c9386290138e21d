"""
envlocal - Serverless environment capture for local invocation

Pulls the environment variables Lambda resolved for each deployed function
into local files, and loads them back before a function is invoked locally.
"""

__version__ = "0.1.0"

from .core import address, envfile, store, syncer

__all__ = [
    "address",
    "envfile",
    "store",
    "syncer",
]
