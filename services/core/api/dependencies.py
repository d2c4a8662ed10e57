"""
FastAPI dependencies: caller identity and the Unit of Work provider.

Authentication is done by the gateway in front of this service. It
forwards the verified identity in headers; this module only reads them.
"""
import uuid
from typing import Optional

from fastapi import Header, HTTPException, Request

from authorization import Caller


def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_family_id: Optional[str] = Header(None),
    x_family_member: Optional[str] = Header("true"),
) -> Caller:
    if not x_user_id or not x_family_id:
        raise HTTPException(status_code=401, detail="Missing caller identity headers")
    try:
        user_id = uuid.UUID(x_user_id)
        family_id = uuid.UUID(x_family_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed caller identity headers")

    return Caller(
        user_id=user_id,
        family_id=family_id,
        verified_member=(x_family_member or "").lower() in ("1", "true", "yes"),
    )


def get_uow_provider(request: Request):
    """UoW provider stored on app.state at startup"""
    return request.app.state.uow_provider
