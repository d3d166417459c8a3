from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from sqlalchemy.orm import Session

from ..database import get_db
from ..notifications.service import NotificationService
from ..utils.notifications import build_notification_service
from .auth import ACCOUNT_TYPES, decode_access_token, oauth2_scheme


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    account_type: str

    @property
    def is_admin(self) -> bool:
        return self.account_type == "admin"


def get_current_user(token: str = Depends(oauth2_scheme), request: Request = None) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    # EventSource cannot send headers, so SSE clients fall back to the cookie
    jwt_token = token or (request.cookies.get("access_token") if request else None)
    if not jwt_token:
        raise credentials_exception
    try:
        payload = decode_access_token(jwt_token)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise credentials_exception
    account_type = payload.get("account_type") or "user"
    if account_type not in ACCOUNT_TYPES:
        raise credentials_exception
    return CurrentUser(user_id=user_id, account_type=account_type)


def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required.",
        )
    return current_user


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return build_notification_service(db)
