import base64
import hashlib
import logging
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException

from config import Settings, get_settings

logger = logging.getLogger(__name__)

AUTH_HEADER = "x-auth-token"
JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10


# Passwords

def _prehash(password: str) -> bytes:
    # bcrypt only reads 72 bytes of input
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_prehash(password), salt).decode("utf-8")


def check_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_prehash(password), hashed.encode("utf-8"))
    except ValueError:
        return False


# Tokens

def issue_token(user_id: str, is_admin: bool, settings: Settings) -> str:
    settings.check()
    payload = {"_id": str(user_id), "isAdmin": bool(is_admin)}
    return jwt.encode(payload, settings.jwt_private_key, algorithm=JWT_ALGORITHM)


def verify_token(token: Optional[str], settings: Settings) -> dict:
    if not token:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    settings.check()
    try:
        return jwt.decode(token, settings.jwt_private_key, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        logger.warning("Rejected invalid auth token")
        raise HTTPException(status_code=400, detail="Invalid token.")


# Dependencies

def require_auth(
    x_auth_token: Optional[str] = Header(None, alias=AUTH_HEADER),
    settings: Settings = Depends(get_settings),
) -> dict:
    return verify_token(x_auth_token, settings)


def require_admin(identity: dict = Depends(require_auth)) -> dict:
    if not identity.get("isAdmin"):
        logger.warning("Admin route refused for user %s", identity.get("_id"))
        raise HTTPException(status_code=403, detail="Access denied.")
    return identity
