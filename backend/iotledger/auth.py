from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

ALGO = "HS256"


def create_token(sub: str, secret: str, minutes: int = 60) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": sub, "iat": now, "exp": now + timedelta(minutes=minutes)}
    return jwt.encode(payload, secret, algorithm=ALGO)


def decode_token(token: str, secret: str) -> str:
    """Return the caller identity carried by the token; raises JWTError."""
    data = jwt.decode(token, secret, algorithms=[ALGO])
    sub = data.get("sub")
    if not sub:
        raise JWTError("token has no subject")
    return sub


security = HTTPBearer()


def require_identity(request: Request, token: HTTPAuthorizationCredentials = Depends(security)) -> str:
    secret = request.app.state.settings.jwt_secret
    try:
        return decode_token(token.credentials, secret)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
