"""Domain-level exceptions for peer links and trust circles."""

from __future__ import annotations


class CircleError(Exception):
	"""Base class for trust circle errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class InvalidArgument(CircleError):
	reason = "invalid_argument"


class SelfLinkError(InvalidArgument):
	reason = "self_link"


class InvalidUserId(InvalidArgument):
	reason = "invalid_user_id"


class UnknownCircle(InvalidArgument):
	reason = "unknown_circle"


class StoreFailure(CircleError):
	"""Raised when the relational store or cache cannot be reached."""

	reason = "store_failure"
