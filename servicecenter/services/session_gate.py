from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from database.models import SessionUser, Technician, UserRole
from utils.constants import ROLE_USER_IDS

LOGGER = logging.getLogger(__name__)

CODE_LENGTH = 4


@dataclass(slots=True)
class LoginAttempt:
    user: SessionUser | None
    error: str | None = None
    code: str = ""

    @property
    def ok(self) -> bool:
        return self.user is not None


class SessionGate:
    """Four-digit code login. A convenience gate, not an auth system.

    Role codes are checked first; any other code is compared with the last
    four characters of each technician id and with the technician PIN, in
    list order. Failed attempts clear the input and are never throttled.
    """

    def __init__(self, role_codes: Mapping[str, str]) -> None:
        self.role_codes = {code: UserRole(role) for code, role in role_codes.items()}

    def attempt(self, code: str, technicians: Iterable[Technician]) -> LoginAttempt:
        code = code.strip()
        if len(code) != CODE_LENGTH or not (code.isascii() and code.isdigit()):
            return LoginAttempt(user=None, error=f"Enter your {CODE_LENGTH}-digit code.")

        role = self.role_codes.get(code)
        if role is not None:
            user_id, name = ROLE_USER_IDS[role.value]
            LOGGER.info("Role login: %s", role.value)
            return LoginAttempt(user=SessionUser(id=user_id, name=name, role=role), code=code)

        for technician in technicians:
            if technician.id[-CODE_LENGTH:] == code or technician.pin == code:
                LOGGER.info("Technician login: %s", technician.id)
                return LoginAttempt(
                    user=SessionUser(id=technician.id, name=technician.name, role=UserRole.TECHNICIAN),
                    code=code,
                )

        LOGGER.info("Login rejected for unknown code")
        return LoginAttempt(user=None, error="Invalid code. Please try again.")
