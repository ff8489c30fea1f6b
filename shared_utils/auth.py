"""
Bearer-token identity
Tokens are issued by the hosted auth provider (HS256, shared secret); the middleware in
main.py decodes them and this module turns the decoded claims into request identity.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv('JWT_SECRET_KEY', 'CHANGE_THIS_TO_A_LONG_RANDOM_STRING')
JWT_ALGORITHM = "HS256"

if JWT_SECRET == 'CHANGE_THIS_TO_A_LONG_RANDOM_STRING':
    logger.warning('WARNING: Using default JWT_SECRET. Set JWT_SECRET_KEY in .env for production!')


@dataclass
class CurrentUser:
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode an access token

    Raises:
        jwt.ExpiredSignatureError, jwt.InvalidTokenError
    """
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], options={"verify_aud": False})


def create_access_token(user_id: str, email: Optional[str] = None, **claims) -> str:
    """Sign a token the same way the auth provider does (tests and local tooling)"""
    payload = {"sub": user_id, "email": email, **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: identity attached by the auth middleware"""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(status_code=401, detail="Usuário não autenticado")
    return CurrentUser(
        id=user_id,
        email=getattr(request.state, "user_email", None),
        user_metadata=getattr(request.state, "user_metadata", None) or {},
    )
