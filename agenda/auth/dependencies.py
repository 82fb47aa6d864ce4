import jwt
from fastapi import Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from agenda.auth import jwt_handler
from agenda.core import config

security = HTTPBearer(auto_error=False)


def tenant_from_credentials(credentials: HTTPAuthorizationCredentials | None) -> str | None:
    """Read the business id claim of an already-issued bearer token."""
    if credentials is None:
        return None

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    tenant_id = payload.get(config.JWT_TENANT_CLAIM)
    return str(tenant_id) if tenant_id else None


def get_tenant_id(
    business_id: str | None = Query(default=None),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    if business_id and business_id.strip():
        return business_id.strip()
    return tenant_from_credentials(credentials)
