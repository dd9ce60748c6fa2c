"""Pydantic schemas for group profiles, match feeds, requests and connections."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProfileData(BaseModel):
	"""Known profile fields; unknown keys ride along untouched."""

	model_config = ConfigDict(extra="allow")

	bio: Optional[str] = None
	current_work: Optional[str] = None
	looking_for: Optional[list[str]] = None
	offering: Optional[list[str]] = None
	linkedin_url: Optional[str] = None


class ProfileUpdateRequest(ProfileData):
	pass


class GroupProfile(BaseModel):
	membership_id: str
	group_id: str
	role: Literal["admin", "member"]
	profile_data: ProfileData
	has_embedding: bool
	joined_at: datetime
	updated_at: datetime
	full_name: Optional[str] = None
	email: Optional[str] = None
	linkedin_url: Optional[str] = None


class MatchItem(BaseModel):
	user_id: str
	full_name: Optional[str] = None
	profile_data: ProfileData
	similarity: float
	match_reason: str = ""


class CurrentUserTags(BaseModel):
	looking_for: list[str] = Field(default_factory=list)
	offering: list[str] = Field(default_factory=list)


class MatchFeedResponse(BaseModel):
	matches: list[MatchItem]
	current_user: CurrentUserTags
	offset: int
	limit: int
	has_more: bool


class MatchRequestCreate(BaseModel):
	target_id: str = Field(..., min_length=1, description="Member the request is sent to")


class MatchRequestSummary(BaseModel):
	id: str
	group_id: str
	requester_id: str
	target_id: str
	status: Literal["pending", "accepted"]
	created_at: datetime


class MemberCard(BaseModel):
	"""Another member as shown on requests; contact details stay hidden."""

	id: str
	full_name: Optional[str] = None
	profile_data: Optional[ProfileData] = None


class ContactCard(MemberCard):
	"""Another member after a mutual match; contact details revealed."""

	email: Optional[str] = None
	linkedin_url: Optional[str] = None


class ConnectionSummary(BaseModel):
	id: str
	match_reason: Optional[str] = None
	created_at: datetime
	other_user: ContactCard


class MatchRequestResult(BaseModel):
	request: MatchRequestSummary
	is_mutual: bool
	connection: Optional[ConnectionSummary] = None


class IncomingRequest(BaseModel):
	id: str
	status: Literal["pending", "accepted"]
	created_at: datetime
	requester: MemberCard


class ConnectionAccept(BaseModel):
	request_id: str = Field(..., min_length=1)


class HideRequest(BaseModel):
	hidden_id: str = Field(..., min_length=1)
	days: Optional[int] = Field(default=None, ge=1, le=365)


class HideResult(BaseModel):
	group_id: str
	hidden_id: str
	hidden_until: Optional[datetime]


class BackfillRequest(BaseModel):
	group_id: Optional[str] = None
	batch_size: int = Field(default=100, ge=1, le=1000)


class BackfillResult(BaseModel):
	updated: int
	failed: int
	skipped: int


class LeaveResult(BaseModel):
	success: bool = True
	group_deleted: bool = False


class GroupStatsResponse(BaseModel):
	group_id: str
	member_count: int
	members_with_embedding: int
	embedding_coverage: float
	pending_requests: int
	connections: int
	new_members_this_week: int
