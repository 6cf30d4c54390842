from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from cashdesk.core.security import token_subject
from cashdesk.db.session import get_db
from cashdesk.db.store import SqlStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_store(db: Session = Depends(get_db)) -> SqlStore:
    return SqlStore(db)


def get_current_user(token: str = Depends(oauth2_scheme), store: SqlStore = Depends(get_store)):
    try:
        user_id = token_subject(token)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")

    user = store.get_user(user_id)
    if not user or not user["is_active"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive or missing user")

    return user
