import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from jose import ExpiredSignatureError, JWTError, jwt

from database import Stores, get_stores
from schemas import Role

logger = logging.getLogger(__name__)

# Security / Auth constants
SECRET_KEY = os.getenv("JWT_SECRET", "supersecretkey")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24

# Added at issuance, stripped again on verification
ISSUED_CLAIMS = ("exp", "iat")

# Claims are caller-supplied, so registered claims like aud and sub are carried, not checked
DECODE_OPTIONS = {"verify_aud": False, "verify_sub": False, "verify_jti": False}


class TokenError(Exception):
    pass


class TokenMalformed(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


def issue_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a copy of ``claims``. The caller's claims are trusted as-is."""
    now = datetime.now(timezone.utc)
    to_encode = {k: v for k, v in claims.items() if k not in ISSUED_CLAIMS}
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"iat": now, "exp": expire})
    logger.info("Issuing token for claims %s", sorted(claims))
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """Return the claims of ``token`` without the ones added by issue_token."""
    try:
        jwt.get_unverified_header(token)
    except JWTError as e:
        raise TokenMalformed(str(e)) from e
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options=DECODE_OPTIONS)
    except ExpiredSignatureError as e:
        raise TokenExpired(str(e)) from e
    except JWTError as e:
        raise TokenInvalid(str(e)) from e
    return {k: v for k, v in payload.items() if k not in ISSUED_CLAIMS}


def bearer_token(authorization: str) -> str:
    scheme, _, token = authorization.partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


# Dependency: identity gate
def verify_jwt(request: Request, authorization: Optional[str] = Header(None)) -> dict:
    if not authorization:
        logger.info("Rejected %s %s: no authorization header", request.method, request.url.path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization")
    try:
        decoded = verify_token(bearer_token(authorization))
    except TokenError as e:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, type(e).__name__)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden access")
    request.state.decoded = decoded
    return decoded


def require_role(role: Role):
    def gate(decoded: dict = Depends(verify_jwt), stores: Stores = Depends(get_stores)) -> dict:
        email = decoded.get("email")
        user = stores.users.find_one({"email": email}) if email else None
        if user is None or user.get("role") != role:
            logger.info("Rejected %s for role %s", email, role)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized access")
        return user

    gate.__name__ = f"verify_{role}"
    return gate


verify_admin = require_role("admin")
verify_instructor = require_role("instructor")
