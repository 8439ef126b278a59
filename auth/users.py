"""
User accounts kept in the Users sheet.

Columns (A:J):
    Username | PasswordHash | Status | RegisteredAt | LastIP | IPHistory |
    IsAdmin | LastAccess | DeviceHistory | Favorites

New accounts start as "pending" and can only log in once an admin approves
them.  Accounts created before hashing was introduced still hold a plaintext
password; the first successful login replaces it with its hash.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from config import USERS_SHEET
from departures.clock import format_timestamp, local_now
from auth.security import (
    AuthError,
    decode_token,
    hash_password,
    is_expired,
    issue_token,
    matches_legacy_plaintext,
    verify_password,
)
from auth.user_agent import parse_user_agent
from store.base import TabularStore
from store.exceptions import SheetNotFound
from store.ranges import a1

logger = logging.getLogger(__name__)

USERS_HEADER = [
    "Username", "PasswordHash", "Status", "RegisteredAt", "LastIP",
    "IPHistory", "IsAdmin", "LastAccess", "DeviceHistory", "Favorites",
]
STATUSES = ("pending", "approved", "rejected")


def _cell(row: list[str], index: int) -> str:
    return row[index] if len(row) > index and row[index] is not None else ""


def _append_history(history: str, entry: str) -> str:
    if not history:
        return entry
    if entry in [item.strip() for item in history.split(",")]:
        return history
    return f"{history}, {entry}"


@dataclass
class UserRecord:
    username: str
    password_hash: str
    status: str = "pending"
    registered_at: str = ""
    last_ip: str = ""
    ip_history: str = ""
    is_admin: bool = False
    last_access: str = ""
    device_history: str = ""
    favorites: str = ""
    row_number: int = 0  # 1-based sheet row

    @classmethod
    def from_row(cls, row: list[str], row_number: int) -> "UserRecord":
        return cls(
            username=_cell(row, 0),
            password_hash=_cell(row, 1),
            status=_cell(row, 2) or "pending",
            registered_at=_cell(row, 3),
            last_ip=_cell(row, 4),
            ip_history=_cell(row, 5),
            is_admin=_cell(row, 6).lower() == "true",
            last_access=_cell(row, 7),
            device_history=_cell(row, 8),
            favorites=_cell(row, 9),
            row_number=row_number,
        )

    def to_row(self) -> list[str]:
        return [
            self.username, self.password_hash, self.status, self.registered_at,
            self.last_ip, self.ip_history, "true" if self.is_admin else "false",
            self.last_access, self.device_history, self.favorites,
        ]

    def public_dict(self) -> dict[str, Any]:
        """Everything but the password hash."""
        return {
            "rowNumber": self.row_number,
            "username": self.username,
            "status": self.status,
            "registeredAt": self.registered_at,
            "lastIP": self.last_ip,
            "ipHistory": self.ip_history,
            "isAdmin": self.is_admin,
            "lastAccess": self.last_access,
            "deviceHistory": self.device_history,
        }


class UserService:

    def __init__(
        self,
        store: TabularStore,
        sheet_name: str = USERS_SHEET,
        clock: Callable[[], str] | None = None,
    ):
        self.store = store
        self.sheet_name = sheet_name
        self._clock = clock or (lambda: format_timestamp(local_now()))

    # -- sheet access ------------------------------------------------------

    def _write_header(self) -> None:
        self.store.write_range(a1(self.sheet_name, "A1:J1"), [USERS_HEADER])

    def load_users(self) -> list[UserRecord]:
        try:
            rows = self.store.read_range(a1(self.sheet_name, "A:J"))
        except SheetNotFound:
            logger.info("Creating %s sheet...", self.sheet_name)
            self.store.create_sheet(self.sheet_name)
            self._write_header()
            return []
        if not rows:
            self._write_header()
            return []
        return [
            UserRecord.from_row(row, row_number)
            for row_number, row in enumerate(rows[1:], start=2)
            if _cell(row, 0)
        ]

    def _save(self, user: UserRecord) -> None:
        self.store.write_range(
            a1(self.sheet_name, f"A{user.row_number}:J{user.row_number}"), [user.to_row()]
        )

    def _set_cell(self, column: str, row_number: int, value: str) -> None:
        self.store.write_range(a1(self.sheet_name, f"{column}{row_number}"), [[value]])

    # -- token checks ------------------------------------------------------

    def _authenticate(self, token: str | None, users: list[UserRecord]) -> UserRecord:
        if not token:
            raise AuthError("Nema tokena")
        claims = decode_token(token)
        user = next((u for u in users if u.username == claims.username), None)
        if user is None or user.status != "approved":
            raise AuthError("Nevažeći token")
        if is_expired(claims):
            raise AuthError("Token je istekao")
        return user

    def _require_admin(self, token: str | None, users: list[UserRecord]) -> UserRecord:
        if not token:
            raise AuthError("Neautorizovan pristup")
        user = self._authenticate(token, users)
        if not user.is_admin:
            raise AuthError("Nemate admin privilegije", 403)
        return user

    # -- actions -----------------------------------------------------------

    def register(self, username: str, password: str, captcha: str | None,
                 ip: str, user_agent: str | None = None) -> str:
        if not username or not password:
            raise AuthError("Nedostaju parametri", 400)
        if not captcha or not captcha.strip():
            raise AuthError("Molimo potvrdite da niste robot", 400)

        users = self.load_users()
        if any(u.username.lower() == username.lower() for u in users):
            raise AuthError("Korisničko ime već postoji", 400)

        user = UserRecord(
            username=username,
            password_hash=hash_password(password),
            registered_at=self._clock(),
            last_ip=ip,
            ip_history=ip,
            device_history=parse_user_agent(user_agent),
        )
        self.store.append_rows(a1(self.sheet_name, "A:J"), [user.to_row()])
        logger.info("Registration request from '%s' (%s).", username, ip)
        return "Zahtev za registraciju poslat! Čekajte odobrenje."

    def login(self, username: str, password: str, ip: str,
              user_agent: str | None = None) -> dict[str, Any]:
        users = self.load_users()
        user = next((u for u in users if u.username == username), None)
        if user is None:
            raise AuthError("Pogrešno korisničko ime ili lozinka")

        needs_migration = False
        if verify_password(password, user.password_hash):
            pass
        elif matches_legacy_plaintext(password, user.password_hash):
            needs_migration = True
        else:
            raise AuthError("Pogrešno korisničko ime ili lozinka")

        if user.status != "approved":
            message = "Nalog je odbijen" if user.status == "rejected" else "Nalog još nije odobren"
            raise AuthError(message, 403)

        if needs_migration:
            user.password_hash = hash_password(password)
        user.last_ip = ip
        user.ip_history = f"{user.ip_history}, {ip}" if user.ip_history else ip
        user.device_history = _append_history(user.device_history, parse_user_agent(user_agent))
        user.last_access = self._clock()
        self._save(user)

        if needs_migration:
            logger.info("Migrated plaintext password for user '%s'.", username)
        return {
            "token": issue_token(username),
            "username": username,
            "isAdmin": user.is_admin,
        }

    def verify(self, token: str | None) -> dict[str, Any]:
        user = self._authenticate(token, self.load_users())
        self._set_cell("H", user.row_number, self._clock())
        return {"username": user.username, "isAdmin": user.is_admin}

    def list_users(self, token: str | None) -> list[dict[str, Any]]:
        users = self.load_users()
        self._require_admin(token, users)
        return [u.public_dict() for u in users]

    def update_status(self, token: str | None, row_number: int | None, status: str | None) -> None:
        users = self.load_users()
        admin = self._require_admin(token, users)
        if not row_number or not status:
            raise AuthError("Nedostaju parametri", 400)
        if status not in STATUSES:
            raise AuthError("Nepoznat status", 400)
        target = next((u for u in users if u.row_number == row_number), None)
        if target is None:
            raise AuthError("Korisnik ne postoji", 404)
        self._set_cell("C", row_number, status)
        logger.info("'%s' set status of '%s' to %s.", admin.username, target.username, status)

    def get_user_data(self, token: str | None) -> dict[str, Any]:
        user = self._authenticate(token, self.load_users())
        return {"username": user.username, "favorites": user.favorites}

    def save_favorites(self, token: str | None, favorites: str | None) -> None:
        user = self._authenticate(token, self.load_users())
        self._set_cell("J", user.row_number, favorites or "")

    def change_password(self, token: str | None, current_password: str | None,
                        new_password: str | None) -> None:
        if not token:
            raise AuthError("Nema tokena")
        if not current_password or not new_password:
            raise AuthError("Nedostaju parametri", 400)
        user = self._authenticate(token, self.load_users())
        if not (verify_password(current_password, user.password_hash)
                or matches_legacy_plaintext(current_password, user.password_hash)):
            raise AuthError("Pogrešna trenutna lozinka", 400)
        self._set_cell("B", user.row_number, hash_password(new_password))
        logger.info("Password changed for user '%s'.", user.username)
