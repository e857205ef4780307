"""
Authentication and authorization dependencies

Tokens are Supabase-issued JWTs; the user id is the ``sub`` claim.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from typing import Optional, Dict, Any
import logging

from saleready.core.config import settings
from saleready.core.database import supabase_service
from saleready.core.exceptions import AuthenticationError, AuthorizationError, ResourceNotFoundError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class AuthService:
    """Handles token decoding and company ownership checks"""

    def __init__(self):
        self.algorithm = settings.JWT_ALGORITHM
        self.audience = settings.JWT_AUDIENCE

    def decode_token(self, token: str) -> Dict[str, Any]:
        """Verify the token when a JWT secret is configured, otherwise read its claims."""
        secret = settings.SUPABASE_JWT_SECRET
        try:
            if secret:
                return jwt.decode(token, secret, algorithms=[self.algorithm], audience=self.audience)
            return jwt.get_unverified_claims(token)
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise AuthenticationError("Could not validate credentials")

    def user_id_from_token(self, token: str) -> str:
        payload = self.decode_token(token)
        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid authentication credentials")
        return user_id

    def get_company(self, company_id: str) -> Dict[str, Any]:
        client = supabase_service.get_client()
        response = client.table("companies").select("id,user_id,name").eq("id", company_id).limit(1).execute()
        if not response.data:
            raise ResourceNotFoundError("Company", company_id)
        return response.data[0]

    def ensure_company_access(self, company_id: str, user_id: str) -> Dict[str, Any]:
        """Return the company row when user_id owns it."""
        company = self.get_company(company_id)
        owner = company.get("user_id")
        if owner and owner != user_id:
            raise AuthorizationError("You do not have access to this company", resource=company_id)
        return company


# Singleton instance
auth_service = AuthService()


# Dependency functions
async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[str]:
    """Optional authentication - returns None if no valid token"""
    if not credentials:
        return None
    try:
        return auth_service.user_id_from_token(credentials.credentials)
    except AuthenticationError:
        logger.warning("Could not parse user ID from token")
        return None


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Dependency to require an authenticated user"""
    if not credentials:
        raise AuthenticationError("Missing bearer token")
    return auth_service.user_id_from_token(credentials.credentials)


async def get_optional_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[Dict[str, Any]]:
    """Token claims (sub, email, ...) for optionally authenticated routes"""
    if not credentials:
        return None
    try:
        return auth_service.decode_token(credentials.credentials)
    except AuthenticationError:
        logger.warning("Could not parse claims from token")
        return None
