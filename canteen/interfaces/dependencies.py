import secrets

from fastapi import Header, Request

from canteen.application.order_service import OrderService
from canteen.domain.errors import Unauthorized


def ok(data, **extra) -> dict:
    return {"success": True, "data": data, **extra}


def error_body(code: str, message: str) -> dict:
    return {"success": False, "error": {"message": message, "code": code}}


def token_matches(token: str | None, expected: str) -> bool:
    if not isinstance(token, str) or not token or not expected:
        return False
    return secrets.compare_digest(token.encode(), expected.encode())


def get_order_service(request: Request) -> OrderService:
    """Retrieves the service from app.state (composition root in main.py)."""
    return request.app.state.order_service


def require_staff(request: Request, authorization: str | None = Header(default=None)) -> None:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    if not token_matches(token, request.app.state.settings.STAFF_TOKEN):
        raise Unauthorized("Unauthorized: Staff access required")
