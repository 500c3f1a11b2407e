"""Resolution of the user a request acts as.

There is no login: every request runs as one configured demo user.
Routers depend on ``get_current_user`` only, so a real authentication
layer can replace ``DemoIdentity`` without touching them.
"""

from __future__ import annotations

import abc
from typing import Optional

from fastapi import Depends, HTTPException, Request

from .models import User
from .storage import Storage


class IdentityResolver(abc.ABC):
    @abc.abstractmethod
    def resolve(self, storage: Storage) -> Optional[User]: ...


class DemoIdentity(IdentityResolver):
    def __init__(self, username: str = "demo") -> None:
        self.username = username

    def resolve(self, storage: Storage) -> Optional[User]:
        return storage.get_user_by_username(self.username)


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_identity(request: Request) -> IdentityResolver:
    return request.app.state.identity


def get_current_user(
    storage: Storage = Depends(get_storage),
    identity: IdentityResolver = Depends(get_identity),
) -> User:
    user = identity.resolve(storage)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
