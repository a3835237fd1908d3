# Demo data: one citizen, one administrator and a handful of issues

import base64
import logging

from .auth import AccountService
from .lifecycle import IssueLifecycle
from .models import IssueStatus, Location, Media, MediaKind, Priority, Role

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Raw definitions
# ---------------------------------------------------------------------------
USERS = [
    {"email": "citizen@example.com", "national_id": "123412341234",
     "password": "citizen123", "role": Role.USER, "language": "en"},
    {"email": "admin@example.com", "national_id": None,
     "password": "admin123", "role": Role.ADMIN, "language": "en"},
]

# Large enough to pass the photo size heuristic
_DEMO_PHOTO = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8\xff" + b"\x00" * 24000).decode()

ISSUES = [
    {"description": "Deep pothole near the bus stop on 5th Main",
     "category": "Roads", "priority": Priority.HIGH, "emergency": False,
     "location": Location(lat=12.9716, lng=77.5946),
     "media": Media(type=MediaKind.PHOTO, data=_DEMO_PHOTO)},
    {"description": "Garbage not collected for a week behind the market",
     "category": "Garbage", "priority": Priority.MEDIUM, "emergency": False,
     "location": Location(lat=12.9750, lng=77.6010),
     "media": Media(type=MediaKind.PHOTO, data=_DEMO_PHOTO),
     "then": {"status": IssueStatus.VERIFIED, "department": "Sanitation"}},
    {"description": "Streetlight flickering on Lake Road",
     "category": "Streetlight", "priority": Priority.LOW, "emergency": False,
     "location": None, "media": None},
]

# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------
def load_demo_data(accounts: AccountService, lifecycle: IssueLifecycle) -> dict:
    """Create the demo records through the regular services. Returns {email: user_id}."""
    user_ids = {}
    for u in USERS:
        _, user = accounts.signup(u["email"], u["national_id"], u["password"],
                                  u["role"], u["language"])
        user_ids[u["email"]] = user.id

    citizen_id = user_ids["citizen@example.com"]
    for entry in ISSUES:
        issue = lifecycle.create(
            citizen_id, entry["description"], entry["priority"], category=entry["category"],
            emergency=entry["emergency"], location=entry["location"], media=entry["media"])
        follow_up = entry.get("then")
        if follow_up:
            lifecycle.update_status(issue.id, status=follow_up["status"],
                                    department=follow_up["department"])
    logger.info("Loaded demo data: %d users, %d issues", len(USERS), len(ISSUES))
    return user_ids
