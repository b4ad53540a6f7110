"""
Dependency injection for FastAPI endpoints.
Services are built once in the application lifespan and stored on
app.state; these functions hand them to request handlers.
"""
from typing import Optional

from fastapi import Header, Request

from tubehub.core.exceptions import UnauthenticatedException
from tubehub.providers import ProviderRegistry
from tubehub.services.engagement_service import EngagementService
from tubehub.services.feed_service import FeedService
from tubehub.services.upload_service import UploadCredentialIssuer


def get_provider_registry(request: Request) -> ProviderRegistry:
    return request.app.state.providers


def get_upload_issuer(request: Request) -> UploadCredentialIssuer:
    return request.app.state.upload_issuer


def get_feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service


def get_engagement_service(request: Request) -> EngagementService:
    return request.app.state.engagement_service


def get_optional_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """
    Current user id as forwarded by the authentication gateway.

    Returns:
        User id, or None for anonymous requests
    """
    if x_user_id is None:
        return None
    x_user_id = x_user_id.strip()
    return x_user_id or None


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Current user id for actions that require authentication.

    Raises:
        UnauthenticatedException: If the request carries no user
    """
    user_id = get_optional_user_id(x_user_id)
    if user_id is None:
        raise UnauthenticatedException()
    return user_id
