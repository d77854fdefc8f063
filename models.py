from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel


class User(BaseModel):
    id: int
    name: str
    email: str
    created_at: Optional[datetime] = None


class Outcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FAILURE = "failure"


class RepositoryResult(BaseModel):
    """Résultat explicite d'une opération sur la table users."""
    outcome: Outcome
    user: Optional[User] = None
    users: List[User] = []

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @classmethod
    def success(cls, user: Optional[User] = None, users: Optional[List[User]] = None):
        return cls(outcome=Outcome.SUCCESS, user=user, users=users or [])

    @classmethod
    def not_found(cls):
        return cls(outcome=Outcome.NOT_FOUND)

    @classmethod
    def conflict(cls):
        return cls(outcome=Outcome.CONFLICT)

    @classmethod
    def failure(cls):
        return cls(outcome=Outcome.FAILURE)
