# Enums and pydantic models for users, issues and API bodies

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Role(str, Enum):
    USER = "User"
    ADMIN = "Admin"

class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

class IssueStatus(str, Enum):
    REPORTED = "Reported"
    VERIFIED = "Verified"
    ASSIGNED = "Assigned"
    RESOLVED = "Resolved"
    SPAM = "Spam"

class MediaKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"

# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------
class Media(BaseModel):
    type: MediaKind
    # data URL ("data:image/jpeg;base64,...") or bare base64
    data: str

class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    national_id: Optional[str] = None
    password_hash: str
    role: Role
    language: Optional[str] = None
    created_at: datetime

class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    category: str
    description: str
    priority: Priority
    emergency: bool = False
    status: IssueStatus
    department: Optional[str] = None
    location: Optional[Location] = None
    media: Optional[Media] = None
    voice: Optional[Media] = None
    created_at: datetime
    updated_at: datetime

class IssueFilter(BaseModel):
    """Conjunctive filters for listing issues; unset fields match everything."""

    category: Optional[str] = None
    status: Optional[IssueStatus] = None
    priority: Optional[Priority] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    def matches(self, issue: Issue) -> bool:
        if self.category is not None and issue.category != self.category:
            return False
        if self.status is not None and issue.status != self.status:
            return False
        if self.priority is not None and issue.priority != self.priority:
            return False
        if self.created_from is not None and issue.created_at < self.created_from:
            return False
        if self.created_to is not None and issue.created_at > self.created_to:
            return False
        return True

# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class SignupRequest(BaseModel):
    # Required-ness is checked by the account service so that a missing
    # identifier, password or role is reported as a 400.
    email: Optional[str] = Field(None, max_length=320)
    national_id: Optional[str] = Field(
        None, max_length=32, validation_alias=AliasChoices("national_id", "aadhaar"))
    password: Optional[str] = None
    role: Optional[Role] = None
    language: Optional[str] = Field(None, max_length=35)

class LoginRequest(BaseModel):
    # Missing fields are answered like wrong ones, with a 401
    identifier: Optional[str] = Field(None, max_length=320)
    password: Optional[str] = None

class VerifyRequest(BaseModel):
    media: Optional[Media] = None

class IssueCreate(BaseModel):
    description: Optional[str] = Field(None, max_length=5000)
    priority: Optional[Priority] = None
    category: Optional[str] = Field(None, max_length=100)
    emergency: bool = False
    location: Optional[Location] = None
    media: Optional[Media] = None
    voice: Optional[Media] = None
    department: Optional[str] = Field(None, max_length=200)

class IssueUpdate(BaseModel):
    status: Optional[IssueStatus] = None
    department: Optional[str] = Field(None, max_length=200)
    priority: Optional[Priority] = None

# ---------------------------------------------------------------------------
# Response bodies
# ---------------------------------------------------------------------------
class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    national_id: Optional[str] = None
    role: Role
    language: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, national_id=user.national_id,
                   role=user.role, language=user.language, created_at=user.created_at)

class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse

class VerifyResponse(BaseModel):
    accepted: bool
    reason: Optional[str] = None
    category: str

class IssueEnvelope(BaseModel):
    issue: Issue

class IssueList(BaseModel):
    issues: List[Issue]
