"""Member (user) information and its conversion from API responses."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Sequence, TypeVar

_E = TypeVar("_E", bound=Enum)

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class UserGender(IntEnum):
    """Gender of a member."""

    UNSPECIFIED = 0
    MALE = 1
    FEMALE = 2


class UserStatus(IntEnum):
    """Activation state of a member."""

    ACTIVATED = 1
    DEACTIVATED = 2
    UNACTIVATED = 4


def _as_enum(enum_cls: type[_E], value: int) -> _E | int:
    try:
        return enum_cls(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class UserDeptInfo:
    """A member's place in one department."""

    dept_id: int
    order: int
    is_leader: bool = False


@dataclass(frozen=True)
class UserInfo:
    """Details of a member."""

    user_id: str = ""
    name: str = ""
    position: str = ""
    departments: list[UserDeptInfo] = field(default_factory=list)
    mobile: str = ""
    gender: UserGender | int = UserGender.UNSPECIFIED
    email: str = ""
    avatar_url: str = ""
    telephone: str = ""
    is_enabled: bool = False
    alias: str = ""
    status: UserStatus | int = 0
    qr_code_url: str = ""


@dataclass(frozen=True)
class UserIdentityInfo:
    """Identity of a visiting user."""

    user_id: str = ""
    open_id: str = ""
    device_id: str = ""


def reshape_dept_info(
    ids: Sequence[int],
    orders: Sequence[int],
    leader_statuses: Sequence[int],
) -> list[UserDeptInfo]:
    """Zip the parallel department arrays of a response into records.

    ``leader_statuses`` may be empty, in which case nobody is a leader.
    """
    if len(ids) != len(orders):
        raise ValueError(
            f"server API breakage: len(DeptIDs) ({len(ids)}) != len(DeptOrder) ({len(orders)})"
        )
    if leader_statuses and len(ids) != len(leader_statuses):
        raise ValueError(
            "server API breakage: "
            f"len(DeptIDs) ({len(ids)}) != len(IsLeaderInDept) ({len(leader_statuses)})"
        )

    leaders = [status != 0 for status in leader_statuses] or [False] * len(ids)
    return [
        UserDeptInfo(dept_id=dept_id, order=order, is_leader=is_leader)
        for dept_id, order, is_leader in zip(ids, orders, leaders)
    ]


def user_gender_from_str(value: str) -> UserGender | int:
    """Parse the gender string of a response; empty means unspecified."""
    if value == "":
        return UserGender.UNSPECIFIED
    if not _INT_RE.fullmatch(value):
        raise ValueError(f'gender string parse failed: parsing "{value}": invalid syntax')
    number = int(value)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f'gender string parse failed: parsing "{value}": value out of range')
    return _as_enum(UserGender, number)


@dataclass(frozen=True)
class UserDetail:
    """A member record as the API returns it."""

    user_id: str = ""
    name: str = ""
    position: str = ""
    dept_ids: list[int] = field(default_factory=list)
    dept_order: list[int] = field(default_factory=list)
    is_leader_in_dept: list[int] = field(default_factory=list)
    mobile: str = ""
    gender: str = ""
    email: str = ""
    avatar_url: str = ""
    telephone: str = ""
    is_enabled: int = 0
    alias: str = ""
    status: int = 0
    qr_code_url: str = ""

    def into_user_info(self) -> UserInfo:
        """Convert into a :class:`UserInfo`, validating the department arrays."""
        departments = reshape_dept_info(self.dept_ids, self.dept_order, self.is_leader_in_dept)
        gender = user_gender_from_str(self.gender)
        return UserInfo(
            user_id=self.user_id,
            name=self.name,
            position=self.position,
            departments=departments,
            mobile=self.mobile,
            gender=gender,
            email=self.email,
            avatar_url=self.avatar_url,
            telephone=self.telephone,
            is_enabled=self.is_enabled != 0,
            alias=self.alias,
            status=_as_enum(UserStatus, self.status),
            qr_code_url=self.qr_code_url,
        )