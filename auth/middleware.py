"""
Authentication middleware for Renoir with local JWT validation
"""
import jwt
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
import os
import logging
from datetime import datetime, timedelta, timezone
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# JWT settings
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

logger = logging.getLogger(__name__)


class AuthMiddleware:
    def __init__(self, jwt_secret: str = None):
        self.jwt_secret = jwt_secret or os.getenv("SUPABASE_JWT_SECRET")

        if not self.jwt_secret:
            raise ValueError("SUPABASE_JWT_SECRET environment variable is required")

    async def verify_token(self, credentials: HTTPAuthorizationCredentials) -> dict:
        """
        Verify a Supabase session JWT locally without round-trip to Supabase
        """
        try:
            payload = jwt.decode(
                credentials.credentials,
                self.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                audience=JWT_AUDIENCE
            )
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired"
            )
        except jwt.InvalidAudienceError:
            logger.warning("Rejected token with wrong audience")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token audience"
            )
        except jwt.InvalidSignatureError:
            logger.warning("Rejected token with invalid signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token signature"
            )
        except jwt.PyJWTError as e:
            logger.warning(f"Rejected malformed token: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {str(e)}"
            )

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("Rejected token without a subject")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user information"
            )

        return {
            "id": user_id,
            "email": payload.get("email"),
        }

    def create_access_token(self, user_id: str, email: str, expires_in: timedelta = timedelta(hours=24)) -> str:
        """
        Create a JWT accepted by verify_token (for custom auth flows)
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "email": email,
            "aud": JWT_AUDIENCE,
            "exp": now + expires_in,
            "iat": now
        }

        return jwt.encode(payload, self.jwt_secret, algorithm=JWT_ALGORITHM)


# Global auth middleware instance - created on first use
auth_middleware = None


def get_auth_middleware():
    """Get or create auth middleware instance"""
    global auth_middleware
    if auth_middleware is None:
        auth_middleware = AuthMiddleware()
    return auth_middleware
