"""
HTTP surface for userfiles-auth.
"""
from .main import create_app

__all__ = ["create_app"]
