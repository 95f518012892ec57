from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from .common import CamelModel, Condition


class AccountSpec(CamelModel):
    username: str = Field(min_length=3, max_length=50)
    password_hash: str = Field(min_length=1)
    email: Optional[str] = None
    is_admin: bool = False
    projects: List[str] = Field(default_factory=list)
    disabled: bool = False


class AccountStatus(CamelModel):
    last_login_time: Optional[str] = None
    conditions: List[Condition] = Field(default_factory=list)
