"""
User profile data model and storage interface.

Sign-in itself is handled by an external identity provider; this module only
stores the profile document attached to an authenticated user id. A missing
profile is created on first access with guest defaults, so applications do not
need an explicit registration flow.

Concrete implementation: 'InMemoryUserProfileDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from tutoring_toolkit.orchestration.data_models import Language, LearnerLevel, TutoringMode

GUEST_NAME = "Guest Scholar"
GUEST_EMAIL = "guest@example.com"
GUEST_AVATAR = "https://api.dicebear.com/7.x/fun-emoji/svg?seed=guest"


class UserProfile(BaseModel):
    """Display data and tutoring preferences of one user."""

    id: str
    display_name: str = GUEST_NAME
    email: str = GUEST_EMAIL
    avatar_url: str = GUEST_AVATAR
    level: LearnerLevel = LearnerLevel.INTERMEDIATE
    language: Language = Language.EN
    chat_mode: TutoringMode | None = None


class UserProfileUpdate(BaseModel):
    """Partial update; fields left as None keep their current value."""

    display_name: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    level: LearnerLevel | None = None
    language: Language | None = None
    chat_mode: TutoringMode | None = None


class UserProfileDatabase(ABC):
    """Abstract repository for 'UserProfile' records."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> UserProfile | None:
        pass

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> UserProfile:
        pass


class InMemoryUserProfileDatabase(UserProfileDatabase):
    def __init__(self) -> None:
        self.profiles: dict[str, UserProfile] = {}

    async def get_profile(self, user_id: str) -> UserProfile | None:
        return self.profiles.get(user_id)

    async def save_profile(self, profile: UserProfile) -> UserProfile:
        self.profiles[profile.id] = profile
        return profile


async def get_or_create_profile(db: UserProfileDatabase, user_id: str) -> UserProfile:
    profile = await db.get_profile(user_id)
    if profile is None:
        profile = await db.save_profile(UserProfile(id=user_id))
    return profile


async def update_profile(db: UserProfileDatabase, user_id: str, update: UserProfileUpdate) -> UserProfile:
    profile = await get_or_create_profile(db, user_id)
    changes = update.model_dump(exclude_none=True)
    return await db.save_profile(profile.model_copy(update=changes))
