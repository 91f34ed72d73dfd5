from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from tourbook.core.security import decode_token
from tourbook.db.session import get_db
from tourbook.schemas.catalog import Actor
from tourbook.services.catalog_service import get_actor

bearer = HTTPBearer(auto_error=False)


def get_current_actor(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Actor:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    actor = get_actor(db, payload.get("sub") or "")
    if not actor:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return actor


def require_roles(*roles: str):
    def _guard(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles and not actor.is_admin:
            raise HTTPException(status_code=403, detail="Forbidden")
        return actor
    return _guard
