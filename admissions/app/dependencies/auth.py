"""Authentication and permission dependencies for the staff API."""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from admissions.app.core.logging import bind_context
from admissions.app.core.permissions import Permission, has_permission
from admissions.app.core.security import decode_access_token
from admissions.app.db.session import get_db
from admissions.app.models.user import User
from admissions.app.services.conversion import ApplicationCreator, DatabaseApplicationCreator


def get_current_user(db: Session = Depends(get_db), authorization: str | None = Header(default=None)) -> User:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_access_token(token)
    except ValueError:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_id = payload.get("sub")
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = db.query(User).filter(User.id == user_id_int).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Not authenticated")
    bind_context(tenant_id=user.tenant_id, actor_id=user.id)
    return user


def require_permission(permission: Permission):
    """Dependency factory yielding the acting staff user, or 403 before any work is done."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not has_permission(current_user.role, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission.value}",
            )
        return current_user

    return dependency


def get_application_creator() -> ApplicationCreator:
    return DatabaseApplicationCreator()
