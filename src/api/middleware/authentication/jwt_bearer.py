from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer

from src.core.dependencies import get_jwt_service
from src.core.logger.logger import get_logger
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.session import AuthenticatedSession

logger = get_logger(__name__)


class CustomHTTPBearer(HTTPBearer):
    """Extracts the bearer token, answering 401 (not 403) when it is missing or malformed"""

    async def __call__(self, request: Request) -> str:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

        try:
            scheme, credentials = auth_header.split()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization header")

        if scheme.lower() != "bearer":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication scheme")

        return credentials


bearer_scheme = CustomHTTPBearer(auto_error=False)


async def get_current_session(
    request: Request,
    token: str = Depends(bearer_scheme),
    jwt_service: JWTService = Depends(get_jwt_service)
) -> AuthenticatedSession:
    """Resolve the caller's session from the Authorization header"""
    session = await jwt_service.authenticate(token)
    request.state.user_id = session.user_id
    return session
