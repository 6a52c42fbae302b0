"""Main client for the ministry registry API."""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from .auth import SessionManager
from .endpoints import (
	ABSENCE_DETAILS_PATH,
	SUBMIT_ABSENCE_PATH,
	SUBMIT_GRADES_PATH,
	EndpointConfigStore,
	EndpointRegistry,
	InMemoryEndpointConfigStore,
)
from .exceptions import MinistryDataError, MinistryRemoteError
from .models import (
	AbsenceRecord, Ack, Credentials, GradeRecord, ProbeResult, Session,
	SubmissionBatchContext, TransportResponse,
)
from .resolver import EndpointResolver
from .transport import Transport
from .utils import build_url, format_date, has_failure_marker, unwrap_envelope

_LOGGER = logging.getLogger(__name__)

READ_TIMEOUT = 10.0
SUBMIT_TIMEOUT = 20.0


def _check_response(operation: str, response: TransportResponse) -> Ack:
	"""Turn a response into an Ack or raise MinistryRemoteError."""
	if not response.ok:
		_LOGGER.warning(f"{operation} failed: HTTP {response.status}")
		raise MinistryRemoteError(
			f"{operation} failed: HTTP {response.status}",
			status=response.status,
			body=response.body,
		)
	result = unwrap_envelope(response.body)
	if has_failure_marker(result):
		_LOGGER.warning(f"{operation} returned an error: {result[:200]}")
		raise MinistryRemoteError(
			f"{operation} returned an error: {result}",
			status=response.status,
			body=response.body,
		)
	return Ack(status=response.status, data=result)


class SubmissionClient:
	"""Authenticated reads and record submissions on fixed paths."""

	def __init__(self, transport: Transport, registry: EndpointRegistry, resolver: EndpointResolver) -> None:
		self.transport = transport
		self.registry = registry
		self.resolver = resolver

	async def _base_url(self, session: Session) -> str:
		"""Server the session logged in against, else the stored one."""
		if session.base_url:
			return session.base_url
		config = await self.registry.get_config()
		return config.base_url

	async def _post(
		self, operation: str, session: Session, path: str, payload: Dict[str, Any], timeout: float
	) -> Ack:
		response = await self.transport.send(
			"POST", build_url(await self._base_url(session), path), body=payload, timeout=timeout
		)
		return _check_response(operation, response)

	async def get_classes(self, session: Session) -> Any:
		"""Get the class filter (classes and grades) visible to the teacher.

		The class filter is published under different names by different
		deployments, so its aliases are tried in order.
		"""
		payload = session.identity_payload()
		payload["DeptInsId"] = session.teacher_id

		found = await self.resolver.resolve(
			await self._base_url(session),
			self.registry.class_filter_candidates,
			payload,
			timeout=READ_TIMEOUT,
		)
		if found is None:
			raise MinistryRemoteError("Class list endpoint not found", status=404)
		response = TransportResponse(status=found.status, body=found.result)
		return _check_response(f"Class list ({found.path})", response).data

	async def get_absence_details(
		self,
		session: Session,
		context: SubmissionBatchContext,
		student_no: str,
		start_date: Optional[date] = None,
		end_date: Optional[date] = None,
	) -> Any:
		"""Get a student's recorded absences between two dates (inclusive)."""
		start = format_date(start_date or context.start_date)
		end = format_date(end_date) if end_date else start

		payload = session.identity_payload()
		payload.update({
			"DepInsId": session.teacher_id,
			"GradeId": context.grade_id,
			"ClassId": context.class_id,
			"StudentSchoolNo": student_no,
			"StartDate": start,
			"EndDate": end,
		})
		ack = await self._post("Absence details", session, ABSENCE_DETAILS_PATH, payload, READ_TIMEOUT)
		return ack.data

	async def submit_absence(
		self,
		session: Session,
		context: SubmissionBatchContext,
		records: Sequence[AbsenceRecord],
	) -> Ack:
		"""Submit one class's attendance for a day as a single batch."""
		if not records:
			raise MinistryDataError("No absence records to submit")

		payload = {
			"userId": session.user_id,
			"auth": session.auth_token,
			"SchoolId": session.school_id,
			"GradeId": context.grade_id,
			"ClassId": context.class_id,
			"StartDate": format_date(context.start_date),
			"UserRoleId": session.user_role_id,
			"StdsAbsDetails": [record.to_wire() for record in records],
		}
		_LOGGER.info(
			f"Submitting {len(records)} absence records for class {context.class_id} on {payload['StartDate']}"
		)
		return await self._post("Absence submission", session, SUBMIT_ABSENCE_PATH, payload, SUBMIT_TIMEOUT)

	async def submit_grades(
		self,
		session: Session,
		context: SubmissionBatchContext,
		records: Sequence[GradeRecord],
	) -> Ack:
		"""Submit one exam's marks for a class as a single batch."""
		if not records:
			raise MinistryDataError("No grade records to submit")
		missing = [
			name for name in ("term_id", "subject_id", "exam_id")
			if not getattr(context, name)
		]
		if missing:
			raise MinistryDataError(f"Grade batch context is missing: {', '.join(missing)}")

		payload = {
			"userId": session.user_id,
			"auth": session.auth_token,
			"SchoolId": session.school_id,
			"UserRoleId": session.user_role_id,
			"ClassId": context.class_id,
			"GradeId": context.grade_id,
			"TermId": context.term_id,
			"SubjectId": context.subject_id,
			"ExamId": context.exam_id,
			"EduSysId": context.edu_sys_id or "1",
			"StageId": context.stage_id or "0",
			"ExamGradeType": context.exam_grade_type or 1,
			"StdsGradeDetails": [record.to_wire() for record in records],
		}
		_LOGGER.info(
			f"Submitting {len(records)} grade records for class {context.class_id}, exam {context.exam_id}"
		)
		return await self._post("Marks submission", session, SUBMIT_GRADES_PATH, payload, SUBMIT_TIMEOUT)


class MinistryClient:
	"""Client for interacting with the ministry registry."""

	def __init__(
		self,
		session: Optional[aiohttp.ClientSession] = None,
		store: Optional[EndpointConfigStore] = None,
		transport: Optional[Transport] = None,
	):
		"""Initialise the client.

		Args:
			session: Optional aiohttp session. If None, a new one will be created.
			store: Endpoint config store. Defaults to an in-memory store.
			transport: Optional transport, mainly for tests. Built from session if None.
		"""
		self.transport = transport or Transport(session)
		self.registry = EndpointRegistry(store or InMemoryEndpointConfigStore())
		self.resolver = EndpointResolver(self.transport)
		self.auth = SessionManager(self.registry, self.resolver)
		self.submissions = SubmissionClient(self.transport, self.registry, self.resolver)
		self.session: Optional[Session] = None

	async def __aenter__(self):
		"""Async context manager entry."""
		await self.transport.__aenter__()
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		"""Async context manager exit."""
		await self.transport.close()

	async def login(self, username: str, password: str, base_url: Optional[str] = None) -> Session:
		"""Login and keep the session for later calls.

		Args:
			username: Ministry username
			password: Ministry password
			base_url: Server address; None keeps the stored one, empty restores the default
		"""
		self.session = await self.auth.login(Credentials(username, password), base_url)
		return self.session

	async def discover_login_path(self, base_url: Optional[str] = None) -> ProbeResult:
		if base_url is None and self.session is not None:
			base_url = self.session.base_url or None
		return await self.auth.discover_login_path(base_url)

	def _session_or(self, session: Optional[Session]) -> Session:
		session = session or self.session
		if session is None:
			raise MinistryDataError("Not logged in")
		return session

	async def get_classes(self, session: Optional[Session] = None) -> Any:
		return await self.submissions.get_classes(self._session_or(session))

	async def get_absence_details(
		self,
		context: SubmissionBatchContext,
		student_no: str,
		start_date: Optional[date] = None,
		end_date: Optional[date] = None,
		session: Optional[Session] = None,
	) -> Any:
		return await self.submissions.get_absence_details(
			self._session_or(session), context, student_no, start_date, end_date
		)

	async def submit_absence(
		self,
		context: SubmissionBatchContext,
		records: List[AbsenceRecord],
		session: Optional[Session] = None,
	) -> Ack:
		return await self.submissions.submit_absence(self._session_or(session), context, records)

	async def submit_grades(
		self,
		context: SubmissionBatchContext,
		records: List[GradeRecord],
		session: Optional[Session] = None,
	) -> Ack:
		return await self.submissions.submit_grades(self._session_or(session), context, records)
