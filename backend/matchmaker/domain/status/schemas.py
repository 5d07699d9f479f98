"""Typed records for the manual status persistence boundary."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from matchmaker.domain.status.models import ManualStatus, parse_status


class StatusChange(BaseModel):
	"""One row-level change from the status feed; ``status=None`` means the row was deleted."""

	user_id: str = Field(min_length=1)
	status: Optional[ManualStatus] = None

	@field_validator("status", mode="before")
	@classmethod
	def _blank_is_deleted(cls, value):
		return parse_status(value)


class StatusUpdatePayload(BaseModel):
	status: ManualStatus


class StatusResponse(BaseModel):
	user_id: str
	status: Optional[ManualStatus] = None
