"""
FastAPI dependencies for userfiles-auth.
"""
from fastapi import Request

from ..services.auth_provider import UserFilesAuthProvider


def get_auth_provider(request: Request) -> UserFilesAuthProvider:
    """Return the provider created by create_app()."""
    return request.app.state.auth_provider
