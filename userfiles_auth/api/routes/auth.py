"""
Authentication endpoints for userfiles-auth.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ...services.auth_provider import Credentials, UserFilesAuthProvider
from ..deps import get_auth_provider
from ..models import ConnectionProfileResponse, ConnectionsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/connections", response_model=ConnectionsResponse)
def list_connections(
    request: Request,
    username: str = Query(default=""),
    ident: str = Query(default=""),
    provider: UserFilesAuthProvider = Depends(get_auth_provider),
) -> ConnectionsResponse:
    """
    Authenticate the request's identity and list its connections.

    Returns 403 when no unexpired configuration file exists for the
    identity. Invalid identities and unreadable files are handled by the
    application's exception handlers.
    """
    credentials = Credentials(
        username=username,
        ident=ident,
        remote_address=request.client.host if request.client else None,
    )

    user = provider.authenticate_user(credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Configuration could not be read.",
        )

    return ConnectionsResponse(
        identifier=user.identifier,
        provider=provider.identifier,
        configurations={
            name: ConnectionProfileResponse(**profile.to_dict())
            for name, profile in user.configurations.items()
        },
    )
