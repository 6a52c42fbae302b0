"""Data models for the ministry registry client."""

from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum
from typing import Any, Dict, Optional, Union

from .exceptions import MinistryDataError


def _as_str(value: Any, default: str) -> str:
	"""Coerce a remote field to a string, falling back when empty."""
	if value is None or value == "":
		return default
	return str(value)


@dataclass
class EndpointConfig:
	"""Where the remote service lives and the last login path that worked."""
	base_url: str
	cached_login_path: Optional[str] = None


@dataclass
class Credentials:
	"""Login credentials supplied by the caller. Never persisted."""
	username: str
	password: str = field(repr=False)


@dataclass
class Session:
	"""Identifiers and token returned by a successful login.

	Every field has a concrete default so callers never branch on None.
	"""
	user_id: str = "0"
	auth_token: str = field(default="", repr=False)
	user_role_id: str = "0"
	school_id: str = "0"
	teacher_id: str = "0"
	# Server the session logged in against; later calls stay on it
	base_url: str = field(default="", compare=False)

	@classmethod
	def from_remote(cls, data: Dict[str, Any]) -> "Session":
		"""Build a session from an unwrapped login response."""
		return cls(
			user_id=_as_str(data.get("UserID") or data.get("id"), "0"),
			auth_token=_as_str(data.get("AuthToken") or data.get("token"), ""),
			user_role_id=_as_str(data.get("UserRoleId"), "0"),
			school_id=_as_str(data.get("SchoolId"), "0"),
			teacher_id=_as_str(data.get("DepInsId") or data.get("DeptInsId"), "0"),
		)

	def identity_payload(self) -> Dict[str, str]:
		"""Identity fields every authenticated request carries."""
		return {
			"userId": self.user_id,
			"auth": self.auth_token,
			"UserRoleId": self.user_role_id,
			"SchoolId": self.school_id,
		}


class AbsenceType(IntEnum):
	"""Attendance states using the remote's integer codes."""
	PRESENT = 0
	ABSENT = 1
	LATE = 2

	@classmethod
	def parse(cls, value: Union["AbsenceType", int, str]) -> "AbsenceType":
		"""Accept an enum member, its integer code or its name."""
		if isinstance(value, cls):
			return value
		try:
			if isinstance(value, str) and not value.isdigit():
				return cls[value.strip().upper()]
			return cls(int(value))
		except (KeyError, ValueError) as e:
			raise MinistryDataError(f"Unknown absence type: {value!r}") from e


@dataclass
class AbsenceRecord:
	"""One student's attendance state for a batch."""
	student_id: str
	absence_type: AbsenceType
	reason_id: Optional[int] = None
	notes: Optional[str] = None

	def to_wire(self) -> Dict[str, Any]:
		if not self.student_id:
			raise MinistryDataError("Absence record is missing a student id")
		wire: Dict[str, Any] = {
			"StudentId": str(self.student_id),
			"AbsenceType": int(AbsenceType.parse(self.absence_type)),
		}
		if self.reason_id is not None:
			wire["ReasonId"] = int(self.reason_id)
		if self.notes is not None:
			wire["Notes"] = self.notes
		return wire


@dataclass
class GradeRecord:
	"""One student's mark for a batch."""
	student_id: str
	mark_value: str
	is_absent: Optional[bool] = None
	notes: Optional[str] = None

	def to_wire(self) -> Dict[str, Any]:
		if not self.student_id:
			raise MinistryDataError("Grade record is missing a student id")
		# The remote expects marks as text
		wire: Dict[str, Any] = {
			"StudentId": str(self.student_id),
			"MarkValue": "" if self.mark_value is None else str(self.mark_value),
		}
		if self.is_absent is not None:
			wire["IsAbsent"] = bool(self.is_absent)
		if self.notes is not None:
			wire["Notes"] = self.notes
		return wire


@dataclass
class SubmissionBatchContext:
	"""Grouping keys the remote needs to interpret a batch."""
	class_id: str
	grade_id: str
	term_id: Optional[str] = None
	subject_id: Optional[str] = None
	exam_id: Optional[str] = None
	edu_sys_id: str = "1"
	stage_id: str = "0"
	exam_grade_type: int = 1
	start_date: Optional[date] = None


@dataclass
class ProbeResult:
	"""Outcome of probing a candidate list."""
	found: bool
	status_code: int
	resolved_path: Optional[str] = None
	message: str = ""


@dataclass
class TransportResponse:
	"""A completed HTTP exchange; non-2xx statuses are data, not errors."""
	status: int
	body: Any = None
	url: Optional[str] = None

	@property
	def ok(self) -> bool:
		return 200 <= self.status < 300


@dataclass
class Ack:
	"""Unwrapped acknowledgement of a successful authenticated call."""
	status: int
	data: Any = None


# Per-candidate attempt outcomes folded by the resolver.

@dataclass
class NotFound:
	path: str
	status: int = 404


@dataclass
class Found:
	path: str
	status: int
	result: Any = None


@dataclass
class Failed:
	path: str
	error: Exception


# Login classification outcomes.

@dataclass
class LoginSuccess:
	session: Session


@dataclass
class LoginRejected:
	reason: str


@dataclass
class LoginMalformed:
	reason: str
