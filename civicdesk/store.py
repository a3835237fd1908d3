"""
Issue and user tables.

The lifecycle manager and the escalation scheduler depend on the abstract
``IssueStore`` / ``UserStore`` capabilities, never on a concrete table, so a
database-backed implementation can be dropped in without touching them.

The in-memory implementations guard each table with a single re-entrant lock.
Records are frozen pydantic models: callers get snapshots, and the only way to
change a stored issue is ``IssueStore.update``, which reads, mutates and writes
back under the lock so concurrent writers cannot lose each other's changes.
"""

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .models import Issue, IssueFilter, User

# Given the current record, return the fields to change, or None to leave it alone.
IssueMutator = Callable[[Issue], Optional[Dict[str, Any]]]


class IssueStore(ABC):
    @abstractmethod
    def add(self, issue: Issue) -> Issue: ...

    @abstractmethod
    def get(self, issue_id: str) -> Issue: ...

    @abstractmethod
    def update(self, issue_id: str, mutate: IssueMutator) -> Issue: ...

    @abstractmethod
    def scan(self, filters: Optional[IssueFilter] = None) -> List[Issue]: ...

    @abstractmethod
    def ids(self) -> List[str]: ...


class UserStore(ABC):
    @abstractmethod
    def add(self, user: User) -> User: ...

    @abstractmethod
    def get(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def find_by_identifier(self, identifier: str) -> List[User]: ...


class InMemoryIssueStore(IssueStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._issues: "OrderedDict[str, Issue]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._issues)

    def add(self, issue: Issue) -> Issue:
        with self._lock:
            if issue.id in self._issues:
                raise ValidationError(f"Issue {issue.id} already exists")
            self._issues[issue.id] = issue
            return issue

    def get(self, issue_id: str) -> Issue:
        with self._lock:
            issue = self._issues.get(issue_id)
        if issue is None:
            raise NotFoundError("Issue not found")
        return issue

    def update(self, issue_id: str, mutate: IssueMutator) -> Issue:
        with self._lock:
            current = self._issues.get(issue_id)
            if current is None:
                raise NotFoundError("Issue not found")
            changes = mutate(current)
            if changes is None:
                return current
            # updated_at never moves backwards, even if the caller's clock does
            stamp = changes.get("updated_at") or current.updated_at
            changes["updated_at"] = max(stamp, current.updated_at)
            updated = current.model_copy(update=changes)
            self._issues[issue_id] = updated
            return updated

    def scan(self, filters: Optional[IssueFilter] = None) -> List[Issue]:
        """Matching issues, most recently created first."""
        with self._lock:
            snapshot = list(self._issues.values())
        snapshot.reverse()
        if filters is None:
            return snapshot
        return [i for i in snapshot if filters.matches(i)]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._issues.keys())


class InMemoryUserStore(UserStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._users: Dict[str, User] = {}
        self._by_email: Dict[str, str] = {}
        self._by_national_id: Dict[str, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def add(self, user: User) -> User:
        with self._lock:
            if user.email is not None and user.email in self._by_email:
                raise ValidationError("Email already registered")
            if user.national_id is not None and user.national_id in self._by_national_id:
                raise ValidationError("National ID already registered")
            self._users[user.id] = user
            if user.email is not None:
                self._by_email[user.email] = user.id
            if user.national_id is not None:
                self._by_national_id[user.national_id] = user.id
            return user

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def find_by_identifier(self, identifier: str) -> List[User]:
        """Users whose email or national ID equals ``identifier`` exactly.

        An email of one user may equal the national ID of another, so this
        can return two records.
        """
        with self._lock:
            found = []
            for index in (self._by_email, self._by_national_id):
                user_id = index.get(identifier)
                if user_id is not None and self._users[user_id] not in found:
                    found.append(self._users[user_id])
            return found
