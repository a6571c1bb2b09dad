"""
Autoclave Cycles Client Package
===============================

Request handling, dialect-aware readers and the client facade.

"""

from .main import AutoclaveClient

__all__ = ["AutoclaveClient"]
