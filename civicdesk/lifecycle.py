"""
Issue lifecycle: creation behind the media gate, status updates, listing and
the escalation mutation applied by the scheduler.

Status values are not restricted by a transition table. Administrators may move
an issue from any status to any other, Resolved and Spam included. The only
rule-bound transition is escalation, which never touches Resolved issues.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .config import (DEFAULT_CATEGORY, ESCALATION_DEPARTMENT, ESCALATION_STALE_DAYS,
                     new_issue_id, now_utc)
from .errors import ValidationError
from .media import HeuristicMediaGate, MediaGate
from .models import (Issue, IssueFilter, IssueStatus, Location, Media, MediaKind,
                     Priority)
from .store import IssueStore, UserStore

logger = logging.getLogger(__name__)

_UNSET = object()


class IssueLifecycle:
    def __init__(self, issues: IssueStore, users: UserStore,
                 gate: Optional[MediaGate] = None, clock: Callable[[], datetime] = now_utc,
                 default_category: str = DEFAULT_CATEGORY):
        self.issues = issues
        self.users = users
        self.gate = gate or HeuristicMediaGate()
        self.clock = clock
        self.default_category = default_category

    def create(self, user_id: str, description: Optional[str], priority: Optional[Priority],
               category: Optional[str] = None, emergency: bool = False,
               location: Optional[Location] = None, media: Optional[Media] = None,
               voice: Optional[Media] = None, department: Optional[str] = None) -> Issue:
        if not description or priority is None:
            raise ValidationError("description and priority are required")
        if self.users.get(user_id) is None:
            raise ValidationError("Unknown user")
        if voice is not None and voice.type != MediaKind.AUDIO:
            raise ValidationError("voice note must be audio")

        verdict = self.gate(media)
        status = IssueStatus.REPORTED if verdict.accepted else IssueStatus.SPAM
        now = self.clock()
        issue = Issue(
            id=new_issue_id(now), user_id=user_id,
            category=self.default_category if category is None else category,
            description=description, priority=priority, emergency=bool(emergency),
            status=status, department=department or None, location=location,
            media=media, voice=voice, created_at=now, updated_at=now,
        )
        self.issues.add(issue)
        if verdict.accepted:
            logger.info("Issue %s reported by %s (%s)", issue.id, user_id, priority.value)
        else:
            logger.info("Issue %s marked spam: %s", issue.id, verdict.reason)
        return issue

    def get(self, issue_id: str) -> Issue:
        return self.issues.get(issue_id)

    def update_status(self, issue_id: str, status: Optional[IssueStatus] = None,
                      department=_UNSET, priority: Optional[Priority] = None) -> Issue:
        """Overwrite any supplied field; ``updated_at`` is refreshed regardless.

        ``department`` is left alone unless passed; passing ``None`` clears it.
        """
        def mutate(current: Issue):
            changes = {"updated_at": self.clock()}
            if status is not None:
                changes["status"] = status
            if department is not _UNSET:
                changes["department"] = department
            if priority is not None:
                changes["priority"] = priority
            return changes

        issue = self.issues.update(issue_id, mutate)
        logger.info("Issue %s updated: status=%s department=%s priority=%s",
                    issue.id, issue.status.value, issue.department, issue.priority.value)
        return issue

    def list(self, filters: Optional[IssueFilter] = None) -> List[Issue]:
        return self.issues.scan(filters)

    def escalate_stale(self, now: Optional[datetime] = None,
                       stale_after: timedelta = timedelta(days=ESCALATION_STALE_DAYS),
                       department: str = ESCALATION_DEPARTMENT) -> int:
        """Promote every unresolved issue older than ``stale_after`` to Assigned.

        Keeps an existing department, otherwise assigns ``department``. A record
        that fails is logged and skipped. Stale issues already Assigned only get
        their timestamp refreshed. Returns the number newly moved to Assigned.
        """
        now = now or self.clock()
        promoted = []

        def mutate(current: Issue):
            if current.status == IssueStatus.RESOLVED:
                return None
            if now - current.created_at <= stale_after:
                return None
            if current.status != IssueStatus.ASSIGNED:
                promoted.append(current.id)
            return {
                "status": IssueStatus.ASSIGNED,
                "department": current.department or department,
                "updated_at": now,
            }

        escalated = 0
        for issue_id in self.issues.ids():
            try:
                issue = self.issues.update(issue_id, mutate)
            except Exception:
                logger.exception("Escalation failed for issue %s", issue_id)
                continue
            if promoted and promoted[-1] == issue_id:
                escalated += 1
                logger.info("Escalated issue %s to %s", issue_id, issue.department)
        return escalated
