import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet

import jwt
from fastapi import Depends, HTTPException, Request, Response

import config
from database import get_db
from schemas import Role

logger = logging.getLogger(__name__)

COOKIE_NAME = "token"
ALGORITHM = "HS256"

# capability -> roles allowed to use it
PERMISSIONS: Dict[str, FrozenSet[Role]] = {
    "manage_users": frozenset({Role.ADMIN}),
    "view_stats": frozenset({Role.ADMIN}),
    "manage_plants": frozenset({Role.SELLER}),
    "view_sales": frozenset({Role.SELLER}),
    "update_order_status": frozenset({Role.SELLER}),
}


def issue_token(email: str) -> str:
    payload = {
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(days=config.TOKEN_EXPIRE_DAYS),
    }
    return jwt.encode(payload, config.ACCESS_TOKEN_SECRET, algorithm=ALGORITHM)


def cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": config.IS_PRODUCTION,
        "samesite": "none" if config.IS_PRODUCTION else "strict",
    }


def set_session_cookie(response: Response, email: str):
    response.set_cookie(COOKIE_NAME, issue_token(email), **cookie_options())


def clear_session_cookie(response: Response):
    response.delete_cookie(COOKIE_NAME, **cookie_options())


def verify_token(request: Request) -> dict:
    """Decode the session cookie and return its claims, or answer 401."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="unauthorized access")
    try:
        claims = jwt.decode(token, config.ACCESS_TOKEN_SECRET, algorithms=[ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.info("Rejected session token: %s", exc)
        raise HTTPException(status_code=401, detail="unauthorized access")
    if not claims.get("email"):
        raise HTTPException(status_code=401, detail="unauthorized access")
    return claims


def require(capability: str):
    """Dependency factory gating a route on the caller's stored role."""
    allowed = PERMISSIONS[capability]

    def checker(claims: dict = Depends(verify_token), db=Depends(get_db)) -> dict:
        user = db["users"].find_one({"email": claims["email"]})
        role = user.get("role") if user else None
        if role not in {r.value for r in allowed}:
            raise HTTPException(status_code=403, detail="forbidden access")
        return claims

    return checker
