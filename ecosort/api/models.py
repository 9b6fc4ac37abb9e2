"""
Pydantic models for API requests and responses.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


# =============================================================================
# Request Models
# =============================================================================


class ProfileUpdateRequest(BaseModel):
    username: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=254)
    profile_picture: str | None = Field(default=None, max_length=2048, description="Profile picture URL")


class SubmissionCreateRequest(BaseModel):
    """Request model for a waste weigh-in."""

    model_config = ConfigDict(json_schema_extra={"examples": [{"type": "Plastic", "weight": 2.5}]})

    type: str = Field(..., min_length=1, max_length=100, description="Waste type name")
    weight: float = Field(..., gt=0, description="Weight in kilograms")


class RejectSubmissionRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class WasteTypeRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={"examples": [{"name": "Plastic", "points_per_kilo": 10}]})

    name: str = Field(..., min_length=1, max_length=100)
    points_per_kilo: float = Field(..., ge=0)


class RewardRequest(BaseModel):
    """Request model for creating or updating a reward."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Reusable Tote Bag",
                    "description": "Canvas bag made from recycled cotton",
                    "category": "Merchandise",
                    "cost": 150,
                    "stock": 25,
                    "image_url": "https://example.org/tote.png",
                }
            ]
        }
    )

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    category: str | None = Field(default=None, max_length=100)
    cost: int = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)
    image_url: str | None = Field(default=None, max_length=2048)


class RoleChangeRequest(BaseModel):
    role: Literal["resident", "admin"]


class AwardPointsRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={"examples": [{"amount": 50, "reason": "Community clean-up drive"}]})

    amount: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)


class ReportCreateRequest(BaseModel):
    """Request model for a violation report."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "description": "Garbage dumped beside the creek",
                    "location": "Purok 3, near the bridge",
                    "category": "illegal_dumping",
                    "severity": "high",
                    "media_url": "https://example.org/photo.jpg",
                    "media_type": "image",
                    "latitude": 14.5995,
                    "longitude": 120.9842,
                }
            ]
        }
    )

    description: str = Field(..., min_length=1, max_length=2000)
    location: str = Field(..., min_length=1, max_length=500)
    category: str | None = Field(default=None, max_length=64)
    severity: str = Field(..., min_length=1, max_length=64)
    media_url: str | None = Field(default=None, max_length=2048)
    media_type: Literal["image", "video"] | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class CommentCreateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)


class ReportStatusRequest(BaseModel):
    status: Literal["pending", "in_progress", "resolved", "rejected"]


class ReportNotesRequest(BaseModel):
    admin_notes: str = Field(default="", max_length=2000)


class CategoryItem(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=100)
    icon: str | None = Field(default=None, max_length=16)


class SeverityLevelItem(BaseModel):
    value: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=100)


class ReportConfigRequest(BaseModel):
    """Either list may be omitted to leave it unchanged."""

    categories: list[CategoryItem] | None = None
    severity_levels: list[SeverityLevelItem] | None = None


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "area": "Zone 1",
                    "barangay": "San Isidro",
                    "day": "monday",
                    "start_time": "07:00",
                    "end_time": "10:00",
                    "frequency": "weekly",
                    "waste_types": ["Biodegradable", "Residual"],
                    "notes": "Place bins at the curb by 6:30",
                    "is_active": True,
                }
            ]
        }
    )

    area: str = Field(..., min_length=1, max_length=200)
    barangay: str = Field(default="", max_length=200)
    day: str = Field(..., min_length=1, max_length=16)
    start_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    frequency: Literal["weekly", "biweekly", "monthly"] = "weekly"
    waste_types: list[str] = Field(default_factory=list)
    notes: str = Field(default="", max_length=2000)
    is_active: bool = True


# =============================================================================
# Response Models
# =============================================================================


class UserResponse(BaseModel):
    id: str
    email: str | None = None
    username: str | None = None
    profile_picture: str | None = None
    role: str
    total_points: float
    created_at: str
    rank: int | None = None
    badge: dict[str, Any] | None = None


class LeaderboardEntry(BaseModel):
    rank: int
    id: str
    username: str | None = None
    email: str | None = None
    profile_picture: str | None = None
    total_points: float


class LeaderboardResponse(BaseModel):
    items: list[LeaderboardEntry]
    my_rank: int = Field(default=0, description="Caller's rank; 0 when unknown")


class AchievementResponse(BaseModel):
    name: str
    icon: str
    description: str
    required_points: int
    unlocked: bool
    points_to_unlock: int


class WasteTypeResponse(BaseModel):
    id: str
    name: str
    points_per_kilo: float
    created_at: str


class EstimateResponse(BaseModel):
    type: str
    weight: float
    points: int


class SubmissionResponse(BaseModel):
    id: str
    user_id: str
    user_email: str | None = None
    type: str
    weight: float
    points: float
    status: str
    submitted_at: str
    confirmed_at: str | None = None
    confirmed_by: str | None = None
    awarded_points: float | None = None
    rejected_at: str | None = None
    rejection_reason: str | None = None


class SubmissionStatsResponse(BaseModel):
    total: int
    confirmed: int
    rejected: int
    pending: int
    success_rate: float
    total_points_awarded: float


class RewardResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    cost: int
    stock: int
    image_url: str | None = None
    created_at: str
    updated_at: str | None = None


class RewardPageResponse(BaseModel):
    items: list[RewardResponse]
    offset: int
    limit: int
    has_more: bool


class RedemptionResponse(BaseModel):
    id: str
    user_id: str
    reward_id: str
    reward_name: str | None = None
    cost: int
    status: str
    redemption_code: str
    redeemed_at: str
    claimed_at: str | None = None
    cancelled_at: str | None = None
    user_email: str | None = None
    username: str | None = None


class RedemptionStatsResponse(BaseModel):
    total: int
    pending: int
    claimed: int
    cancelled: int
    success_rate: float
    total_points_redeemed: int


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    points: float
    type: str
    description: str
    reference_id: str | None = None
    timestamp: str
    user_email: str | None = None
    username: str | None = None


class AwardPointsResponse(BaseModel):
    user_id: str
    amount: int
    total_points: float
    transaction_id: str


class CommentResponse(BaseModel):
    id: str
    user_id: str
    author: str
    text: str
    timestamp: str


class ReportResponse(BaseModel):
    id: str
    author_id: str
    author_email: str | None = None
    author_username: str | None = None
    description: str
    location: str
    category: str | None = None
    severity: str
    media_url: str | None = None
    media_type: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    status: str
    resolved: bool
    admin_notes: str = ""
    submitted_at: str
    updated_at: str | None = None
    likes: list[str] = Field(default_factory=list)
    like_count: int = 0
    comments: list[CommentResponse] = Field(default_factory=list)


class LikeResponse(BaseModel):
    liked: bool
    like_count: int


class ReportConfigResponse(BaseModel):
    form_categories: list[dict[str, Any]]
    forum_categories: list[dict[str, Any]]
    admin_categories: list[dict[str, Any]]
    severity_levels: list[dict[str, Any]]


class ScheduleResponse(BaseModel):
    id: str
    area: str
    barangay: str
    day: str
    start_time: str
    end_time: str
    frequency: str
    waste_types: list[str]
    notes: str
    is_active: bool
    created_at: str
    updated_at: str | None = None


class NotificationResponse(BaseModel):
    id: str
    type: str
    message: str
    read: bool
    created_at: str


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    unread_count: int
