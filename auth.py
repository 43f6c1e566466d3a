from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from accounts import public_user
from system import BookRentalSystem, get_system

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")

# Dependency: get current user
def get_current_user(token: str = Depends(oauth2_scheme), system: BookRentalSystem = Depends(get_system)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, system.settings.jwt_secret, algorithms=[system.settings.jwt_algorithm])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = system.accounts.get(user_id)
    if not user:
        raise credentials_exception
    return public_user(user)

# Role guard
def require_role(*roles):
    def _guard(user=Depends(get_current_user)):
        if user.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Admin only" if roles == ("admin",) else "Forbidden")
        return user
    return _guard
