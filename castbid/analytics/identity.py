"""
User identity inputs for comparisons: a numeric fid or a username alias.
"""

import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

_USERNAME_RE = re.compile(r'^[a-z0-9][a-z0-9_.-]{0,31}$', re.IGNORECASE)


class InvalidIdentityError(ValueError):
    """The identifier is neither a positive fid nor a well-formed username"""


class IdentityNotFoundError(LookupError):
    """A username alias did not resolve to a fid"""

    def __init__(self, username: str):
        super().__init__(f"User not found: {username}")
        self.username = username


@dataclass(frozen=True)
class FidIdentity:
    fid: int


@dataclass(frozen=True)
class UsernameIdentity:
    username: str


Identity = Union[FidIdentity, UsernameIdentity]

# async (username) -> fid or None
UsernameLookup = Callable[[str], Awaitable[Optional[int]]]


def parse_fid(value) -> FidIdentity:
    try:
        fid = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidIdentityError(f"fid must be a valid number, got {value!r}")
    if fid <= 0:
        raise InvalidIdentityError(f"fid must be positive, got {fid}")
    return FidIdentity(fid)


def parse_username(value) -> UsernameIdentity:
    username = str(value or '').strip().lstrip('@')
    if not _USERNAME_RE.match(username):
        raise InvalidIdentityError(f"Invalid username: {value!r}")
    return UsernameIdentity(username.lower())


def parse_identity(fid: Optional[str] = None, username: Optional[str] = None) -> Identity:
    """Exactly one of fid / username must be given"""
    if fid is not None and username is not None:
        raise InvalidIdentityError("Specify either a fid or a username, not both")
    if fid is not None:
        return parse_fid(fid)
    if username is not None:
        return parse_username(username)
    raise InvalidIdentityError("A fid or a username is required")


async def resolve_identity(identity: Identity, lookup: UsernameLookup) -> int:
    if isinstance(identity, FidIdentity):
        return identity.fid
    fid = await lookup(identity.username)
    if fid is None:
        raise IdentityNotFoundError(identity.username)
    return int(fid)
