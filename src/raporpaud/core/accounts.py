"""
Role accounts.

Three fixed username/password pairs resolve to the admin, teacher and parent
roles. This gates screens by role; it is not an identity provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from raporpaud.core.schemas import User

if TYPE_CHECKING:
    from raporpaud.config import Settings
    from raporpaud.core.schemas import UserRole


@dataclass(frozen=True)
class RoleAccount:
    """A fixed login account."""

    username: str
    display_name: str
    role: UserRole


ACCOUNTS: tuple[RoleAccount, ...] = (
    RoleAccount("admin", "Administrator", "admin"),
    RoleAccount("guru", "Guru Kelas", "teacher"),
    RoleAccount("ortu", "Orang Tua", "parent"),
)


def _password_for(account: RoleAccount, settings: Settings) -> str:
    passwords = {
        "admin": settings.ADMIN_PASSWORD,
        "teacher": settings.TEACHER_PASSWORD,
        "parent": settings.PARENT_PASSWORD,
    }
    return passwords[account.role]


def authenticate(username: str, password: str, settings: Settings) -> User | None:
    """Resolve credentials to a user.

    Args:
        username: Login name (case-sensitive)
        password: Plain password
        settings: Application settings holding the role passwords

    Returns:
        User for a matching account, None otherwise
    """
    for account in ACCOUNTS:
        if account.username == username and _password_for(account, settings) == password:
            return User(username=account.username, name=account.display_name, role=account.role)
    return None
