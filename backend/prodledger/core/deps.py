from dataclasses import dataclass

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from prodledger.core.config import settings
from prodledger.core.logging import company_id_ctx_var, user_id_ctx_var


@dataclass(frozen=True, slots=True)
class CurrentUser:
    """Identity claims of the caller, as issued by the upstream auth service."""

    id: int
    company_id: int


def _decode_options() -> dict:
    return {
        "verify_aud": settings.JWT_AUDIENCE is not None,
        "verify_iss": settings.JWT_ISSUER is not None,
    }


async def get_current_user(request: Request) -> CurrentUser:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    token = auth.split(" ", 1)[1]
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options=_decode_options(),
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token"
        )

    try:
        user = CurrentUser(id=int(payload["id"]), company_id=int(payload["company_id"]))
    except (KeyError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Token is missing id or company_id"
        )

    request.state.user = user
    user_id_ctx_var.set(str(user.id))
    company_id_ctx_var.set(str(user.company_id))
    return user
