"""Single authorization guard used before any scoped data access.

Authentication is always checked before authorization: no identity is
``UNAUTHENTICATED`` (401) whatever else is required, a wrong role or a failed
ownership predicate is ``FORBIDDEN`` (403).
"""
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from agrimarket.core.errors import Forbidden, Unauthenticated
from agrimarket.schemas.user import Identity


class AuthStatus(str, Enum):
    OK = "ok"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


def authorize(
    identity: Optional[Identity],
    required_role: Union[str, Iterable[str], None] = None,
    predicate: Optional[Callable[[Identity], bool]] = None,
) -> AuthStatus:
    if identity is None:
        return AuthStatus.UNAUTHENTICATED

    if required_role is not None:
        roles = {required_role} if isinstance(required_role, str) else set(required_role)
        if identity.role not in roles:
            return AuthStatus.FORBIDDEN

    if predicate is not None and not predicate(identity):
        return AuthStatus.FORBIDDEN

    return AuthStatus.OK


def ensure_authorized(
    identity: Optional[Identity],
    required_role: Union[str, Iterable[str], None] = None,
    predicate: Optional[Callable[[Identity], bool]] = None,
    forbidden_detail: Optional[str] = None,
) -> Identity:
    result = authorize(identity, required_role, predicate)
    if result is AuthStatus.UNAUTHENTICATED:
        raise Unauthenticated()
    if result is AuthStatus.FORBIDDEN:
        raise Forbidden(forbidden_detail)
    return identity
