"""Bearer-token authentication for the applicant API.

`POST /auth/login` issues a JWT carrying the applicant's `user_id`. Every
`/api` route depends on `get_current_user`, so the acting user always
comes from a verified token and never from the request body or path.
Sections, documents, tracking entries and contacts are then scoped to
that user by the services.
"""

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from . import models, repositories
from .database import engine
from .services import JWT_ALGORITHM, JWT_SECRET

bearer_scheme = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={'WWW-Authenticate': 'Bearer'})


def decode_token(token: str) -> dict:
    """Verify the signature and expiry of an applicant token and return its claims."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _unauthorized('token expired')
    except jwt.PyJWTError:
        raise _unauthorized('invalid token')


def get_current_user(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> models.User:
    """Resolve the applicant behind the bearer token.

    A token whose user has since been removed is rejected like a forged one.
    """
    claims = decode_token(credentials.credentials)
    user_id = claims.get('user_id')
    if not isinstance(user_id, int):
        raise _unauthorized('invalid token payload')
    with Session(engine) as session:
        applicant = repositories.UserRepository(session).get(user_id)
    if applicant is None:
        raise _unauthorized('user not found')
    return applicant
