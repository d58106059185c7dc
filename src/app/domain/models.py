# src/app/domain/models.py
"""
Domain models for recipe imports and usage accounting.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Difficulty(str, Enum):
    """The three fixed difficulty levels a recipe can have."""
    EASY = "Einfach"
    MEDIUM = "Mittel"
    HARD = "Schwer"


class FeatureKind(str, Enum):
    """Quota bucket an import attempt is counted against."""
    MANUAL = "manual"
    LINK_IMPORT = "link-import"
    PHOTO_SCAN = "photo-scan"


class SourceKind(str, Enum):
    SOCIAL = "social"
    WEBSITE = "website"
    PHOTO = "photo"


class BatchState(str, Enum):
    """Lifecycle of a bulk photo scan."""
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    CANCELLING = "cancelling"
    DONE = "done"


PAID_SUBSCRIPTIONS = frozenset({"pro_monthly", "pro_yearly", "lifetime"})


@dataclass
class Ingredient:
    name: str
    amount: Optional[str] = None
    checked: bool = False


@dataclass
class Instruction:
    text: str
    icon: Optional[str] = None


@dataclass
class Recipe:
    """A recipe owned by a single identity."""
    owner_id: str
    title: str
    category: str
    prep_time_minutes: int
    difficulty: Difficulty
    portions: int
    ingredients: list[Ingredient] = field(default_factory=list)
    instructions: list[Instruction] = field(default_factory=list)

    # Images: display URL and/or durable storage handle
    image: str = ""
    image_storage_id: Optional[str] = None
    image_blurhash: Optional[str] = None
    image_alt: Optional[str] = None
    source_image_url: Optional[str] = None

    # Origin of an imported recipe, drives dedup and classification
    source_url: Optional[str] = None

    is_favorite: bool = False
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class UsageStats:
    """Lifetime usage counters embedded in the owner's profile."""
    manual_recipes: int = 0
    link_imports: int = 0
    photo_scans: int = 0
    subscription_start_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    reset_on_downgrade: bool = False

    def count_for(self, feature: FeatureKind) -> int:
        if feature == FeatureKind.LINK_IMPORT:
            return self.link_imports
        if feature == FeatureKind.PHOTO_SCAN:
            return self.photo_scans
        return self.manual_recipes


@dataclass
class UserProfile:
    user_id: str
    subscription: str = "free"
    subscription_status: str = "active"
    usage: UsageStats = field(default_factory=UsageStats)

    @property
    def is_paid(self) -> bool:
        """Pro, lifetime and trialing users have no limits."""
        return (
            self.subscription in PAID_SUBSCRIPTIONS
            or self.subscription_status == "trialing"
        )


@dataclass
class RateLimitWindow:
    count: int
    window_start: float  # epoch seconds


@dataclass
class RateLimitStatus:
    remaining: int
    reset_at: float  # epoch seconds
    limit: int


@dataclass
class CategoryStat:
    owner_id: str
    category: str
    count: int
    id: Optional[str] = None


@dataclass
class Category:
    owner_id: str
    name: str
    icon: str
    color: str
    order: int
    is_active: bool = True
    image_url: Optional[str] = None
    image_storage_id: Optional[str] = None
    id: Optional[str] = None


@dataclass
class RecipeFallback:
    """Defaults merged into whatever the model returns."""
    title: str
    category: str
    prep_time_minutes: int
    difficulty: Difficulty
    portions: int


@dataclass
class ExtractedRecipeDoc:
    """Candidate recipe parsed from model output. Never persisted directly."""
    title: str
    category: str
    prep_time_minutes: int
    difficulty: Difficulty
    portions: int
    ingredients: list[Ingredient] = field(default_factory=list)
    instructions: list[Instruction] = field(default_factory=list)
    image_keywords: Optional[str] = None
    degraded: bool = False


@dataclass
class ResolvedImage:
    storage_id: Optional[str] = None
    display_url: str = ""
    blurhash: Optional[str] = None

    @property
    def is_stored(self) -> bool:
        return self.storage_id is not None


@dataclass
class QuotaCheck:
    """Result of a quota check operation."""
    allowed: bool
    feature: FeatureKind
    current: int
    limit: Optional[int]


@dataclass
class ImportOutcome:
    recipe_id: str
    duplicate: bool = False
    recipe: Optional[Recipe] = None


@dataclass
class BulkScanResult:
    succeeded: list[str] = field(default_factory=list)
    failed_count: int = 0
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.succeeded) + self.failed_count
