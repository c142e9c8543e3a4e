from datetime import datetime, timedelta, timezone

from bson import ObjectId
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from mess_api.core.config import settings
from mess_api.core.errors import ForbiddenError
from mess_api.db.session import get_database
from mess_api.models.user import UserRole
from mess_api.repositories.user_repo import UserRepository

security = HTTPBearer()


class CurrentUser(BaseModel):
    """Caller identity handed to every ledger operation."""
    id: ObjectId
    role: UserRole = UserRole.USER

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def ensure_can_act_for(self, owner_id: ObjectId) -> None:
        """Non-admins may only act on records they own."""
        if not self.is_admin and self.id != owner_id:
            raise ForbiddenError("You can only modify your own entries")


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": user_id,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp())
    }

    return jwt.encode(
        payload,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM
    )

async def get_current_user(
    credentials = Depends(security),
    db = Depends(get_database)
) -> CurrentUser:
    """Get current user from JWT token."""
    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
        user_id = payload.get("sub")
    except JWTError:
        user_id = None

    if not user_id or not ObjectId.is_valid(user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user = await UserRepository(db).get_user_by_id(ObjectId(user_id))
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return CurrentUser(id=user.id, role=user.role)

async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Allow only admins through."""
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user
