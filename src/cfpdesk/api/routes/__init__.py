"""API Routes"""

from . import cfp

__all__ = ["cfp"]
