import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from eventpass.services.container import Services, get_services


async def require_admin_token(
    x_admin_token: Optional[str] = Header(None),
    services: Services = Depends(get_services),
) -> None:
    expected = services.admin_token
    supplied = x_admin_token or ""
    if not expected or not hmac.compare_digest(expected.encode(), supplied.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
