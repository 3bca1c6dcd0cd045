"""Credential store backed by the storage gateway."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .exceptions import AuthenticationError, PersistenceError, ValidationError
from .gateway import StorageGateway
from .validators import validate_password, validate_username

logger = logging.getLogger(__name__)

USERS_KEY = "users"

INVALID_CREDENTIALS = "Invalid username or password."
USERNAME_TAKEN = "Username already exists."


class CredentialStore:
    """Registers users and checks passwords.

    Only salted password hashes are stored. Username lookup is exact for
    login, but registration treats names differing only in case as taken.
    """

    def __init__(self, gateway: StorageGateway) -> None:
        self._gateway = gateway

    async def _users(self) -> List[Dict[str, Any]]:
        return await self._gateway.load(USERS_KEY, [])

    async def register(self, username: object, password: object, confirm: Optional[object] = None) -> str:
        if not username or not password:
            raise ValidationError("Please fill out all fields.")
        name = validate_username(username)
        secret = validate_password(password)
        if confirm is not None and confirm != secret:
            raise ValidationError("Passwords do not match.")

        users = await self._users()
        if any(user["username"].lower() == name.lower() for user in users):
            raise AuthenticationError(USERNAME_TAKEN)

        users.append({"username": name, "password_hash": generate_password_hash(secret)})
        if not await self._gateway.save(USERS_KEY, users):
            raise PersistenceError("Could not save account. Please try again later.")
        logger.info("Registered user %s", name)
        return name

    async def login(self, username: object, password: object) -> str:
        if not username or not password:
            raise ValidationError("Please fill out all fields.")
        users = await self._users()
        for user in users:
            if user["username"] == username and check_password_hash(user["password_hash"], str(password)):
                return user["username"]
        logger.info("Rejected login for %s", username)
        raise AuthenticationError(INVALID_CREDENTIALS)
