from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from cfpdesk.application.services.scheduled_email_scheduler import format_time_remaining
from cfpdesk.application.workflows.decision_workflow import (
    DecisionWorkflow,
    build_default_workflow,
)
from cfpdesk.domain.errors import (
    CfpError,
    ConflictError,
    NotCancellableError,
    NotFoundError,
    ReviewLockedError,
    TransportError,
)
from cfpdesk.domain.scheduled_email import ScheduledEmail, ScheduleEmailOptions
from cfpdesk.domain.submission import SubmissionStatus
from cfpdesk.utils.logging_config import LogFiles, Logger

router = APIRouter()

_workflow: Optional[DecisionWorkflow] = None


def _get_workflow() -> DecisionWorkflow:
    """Lazy init so importing the app does not open the database."""
    global _workflow
    if _workflow is None:
        _workflow = build_default_workflow()
    return _workflow


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        detail: Dict[str, Any] = {"error": str(exc)}
        if isinstance(exc.existing, ScheduledEmail):
            detail["existing"] = exc.existing.to_dict()
        return HTTPException(status_code=409, detail=detail)
    if isinstance(exc, (NotCancellableError, ReviewLockedError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, TransportError):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, (CfpError, ValueError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail="Internal error")


def _email_dict(workflow: DecisionWorkflow, email: ScheduledEmail) -> Dict[str, Any]:
    data = email.to_dict()
    minutes = workflow.scheduler.time_remaining(email)
    data["time_remaining_minutes"] = minutes if email.is_pending else None
    data["time_remaining_display"] = format_time_remaining(minutes) if email.is_pending else None
    return data


# ── speakers & submissions ──────────────────────────────────────


class CreateSpeakerRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=256)
    first_name: str = ""
    last_name: str = ""


@router.post("/cfp/speakers")
def create_speaker(req: CreateSpeakerRequest):
    wf = _get_workflow()
    try:
        speaker = wf.submissions.create_speaker(
            email=req.email, first_name=req.first_name, last_name=req.last_name
        )
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"speaker": speaker.to_dict()}


class CreateSubmissionRequest(BaseModel):
    speaker_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=512)
    submission_type: str = "standard"
    workshop_details: Dict[str, Any] = Field(default_factory=dict)


@router.post("/cfp/submissions")
def create_submission(req: CreateSubmissionRequest):
    wf = _get_workflow()
    try:
        submission = wf.submissions.create_submission(
            speaker_id=req.speaker_id,
            title=req.title,
            submission_type=req.submission_type,
            workshop_details=req.workshop_details,
        )
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"submission": submission.to_dict()}


@router.get("/cfp/submissions")
def list_submissions(status: Optional[str] = None, limit: int = 200):
    wf = _get_workflow()
    try:
        parsed = SubmissionStatus.parse(status) if status else None
    except ValueError as exc:
        raise _to_http(exc) from exc
    items = wf.submissions.list_submissions(status=parsed, limit=limit)
    return {"submissions": [s.to_dict() for s in items], "count": len(items)}


@router.get("/cfp/submissions/{submission_id}")
def get_submission(submission_id: str):
    wf = _get_workflow()
    submission = wf.submissions.get_submission(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"submission not found: {submission_id}")
    return {"submission": submission.to_dict()}


class SetStatusRequest(BaseModel):
    status: str


@router.post("/cfp/submissions/{submission_id}/status")
def set_status(submission_id: str, req: SetStatusRequest):
    wf = _get_workflow()
    try:
        result = wf.set_status(submission_id, req.status)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return result.to_dict()


class BulkStatusRequest(BaseModel):
    submission_ids: List[str] = Field(..., min_length=1)
    status: str


@router.post("/cfp/submissions/bulk-status")
def bulk_set_status(req: BulkStatusRequest):
    wf = _get_workflow()
    try:
        result = wf.bulk_set_status(req.submission_ids, req.status)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return result.to_dict()


# ── reviews & scores ────────────────────────────────────────────


class ReviewRequest(BaseModel):
    score_overall: Optional[float] = None
    score_relevance: Optional[float] = None
    score_technical_depth: Optional[float] = None
    score_clarity: Optional[float] = None
    score_diversity: Optional[float] = None
    private_notes: Optional[str] = None
    feedback_to_speaker: Optional[str] = None


@router.put("/cfp/submissions/{submission_id}/reviews/{reviewer_id}")
def submit_review(submission_id: str, reviewer_id: str, req: ReviewRequest):
    wf = _get_workflow()
    scores = {
        "overall": req.score_overall,
        "relevance": req.score_relevance,
        "technical_depth": req.score_technical_depth,
        "clarity": req.score_clarity,
        "diversity": req.score_diversity,
    }
    try:
        review = wf.submit_review(
            submission_id,
            reviewer_id,
            scores=scores,
            private_notes=req.private_notes,
            feedback_to_speaker=req.feedback_to_speaker,
        )
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"review": review.to_dict()}


@router.get("/cfp/submissions/{submission_id}/reviews")
def list_reviews(submission_id: str):
    wf = _get_workflow()
    reviews = wf.review_service.list_reviews(submission_id)
    return {"reviews": [r.to_dict() for r in reviews], "count": len(reviews)}


@router.get("/cfp/submissions/{submission_id}/scores")
def get_scores(submission_id: str, total_reviewers: Optional[int] = None):
    wf = _get_workflow()
    try:
        aggregate = wf.aggregate_scores(submission_id)
        scoring = wf.submission_scoring(submission_id, total_reviewers)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {
        "aggregate": aggregate.to_dict() if aggregate else None,
        "scoring": scoring.to_dict(),
    }


@router.get("/cfp/insights")
def get_insights(total_reviewers: Optional[int] = None):
    if total_reviewers is not None and total_reviewers < 0:
        raise HTTPException(status_code=400, detail="total_reviewers must not be negative")
    return _get_workflow().insights(total_reviewers)


# ── decision ────────────────────────────────────────────────────


class DecideRequest(BaseModel):
    decision: str
    notes: Optional[str] = None
    decided_by: Optional[str] = None


@router.post("/cfp/submissions/{submission_id}/decision")
def decide(submission_id: str, req: DecideRequest):
    wf = _get_workflow()
    try:
        decision = wf.decide(submission_id, req.decision, notes=req.notes, decided_by=req.decided_by)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"decision": decision.to_dict()}


@router.get("/cfp/submissions/{submission_id}/decision")
def get_decision(submission_id: str):
    wf = _get_workflow()
    try:
        state = wf.get_decision_and_emails(submission_id)
        events = wf.decision_history(submission_id)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {
        "decision": state["status"].to_dict(),
        "scheduled_emails": [_email_dict(wf, e) for e in state["scheduled_emails"]],
        "events": [e.to_dict() for e in events],
    }


# ── attendance ──────────────────────────────────────────────────


class AttendanceRequest(BaseModel):
    response: str = "confirm"
    decline_reason: Optional[str] = None
    decline_notes: Optional[str] = None


@router.get("/cfp/submissions/{submission_id}/attendance")
def get_attendance(submission_id: str):
    wf = _get_workflow()
    try:
        attendance = wf.get_attendance(submission_id)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"attendance": attendance.to_dict() if attendance else None}


@router.post("/cfp/submissions/{submission_id}/attendance")
def respond_attendance(submission_id: str, req: AttendanceRequest):
    wf = _get_workflow()
    try:
        attendance = wf.respond_attendance(
            submission_id,
            req.response,
            decline_reason=req.decline_reason,
            decline_notes=req.decline_notes,
        )
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"attendance": attendance.to_dict()}


# ── scheduled emails ────────────────────────────────────────────


class ScheduleEmailRequest(BaseModel):
    email_type: str
    personal_message: Optional[str] = None
    coupon_discount_percent: Optional[int] = Field(default=None, ge=0, le=100)
    coupon_validity_days: Optional[int] = Field(default=None, ge=0, le=365)
    include_feedback: bool = False
    feedback_text: Optional[str] = None
    scheduled_by: Optional[str] = None


@router.post("/cfp/submissions/{submission_id}/emails")
def schedule_email(submission_id: str, req: ScheduleEmailRequest):
    wf = _get_workflow()
    options = ScheduleEmailOptions(
        personal_message=req.personal_message,
        coupon_discount_percent=req.coupon_discount_percent,
        coupon_validity_days=req.coupon_validity_days,
        include_feedback=req.include_feedback,
        feedback_text=req.feedback_text,
    )
    try:
        email = wf.schedule_email(
            submission_id, req.email_type, options, scheduled_by=req.scheduled_by
        )
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"scheduled_email": _email_dict(wf, email)}


@router.get("/cfp/submissions/{submission_id}/emails")
def list_emails(submission_id: str):
    wf = _get_workflow()
    emails = wf.scheduler.list_for_submission(submission_id)
    return {"scheduled_emails": [_email_dict(wf, e) for e in emails], "count": len(emails)}


class CancelEmailRequest(BaseModel):
    cancelled_by: Optional[str] = None


@router.post("/cfp/emails/{email_id}/cancel")
def cancel_email(email_id: str, req: Optional[CancelEmailRequest] = None):
    wf = _get_workflow()
    try:
        email = wf.cancel_scheduled_email(
            email_id, cancelled_by=req.cancelled_by if req else None
        )
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"scheduled_email": _email_dict(wf, email)}


@router.post("/cfp/emails/{email_id}/send-now")
def send_now(email_id: str):
    wf = _get_workflow()
    try:
        email = wf.send_now(email_id)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"scheduled_email": _email_dict(wf, email)}


class FailEmailRequest(BaseModel):
    reason: str = Field(..., min_length=1)


@router.post("/cfp/emails/{email_id}/fail")
def mark_email_failed(email_id: str, req: FailEmailRequest):
    wf = _get_workflow()
    try:
        email = wf.mark_email_failed(email_id, req.reason)
    except (CfpError, ValueError) as exc:
        raise _to_http(exc) from exc
    return {"scheduled_email": _email_dict(wf, email)}


@router.post("/cfp/dispatch/tick")
def dispatch_tick():
    wf = _get_workflow()
    result = wf.tick_dispatch_worker()
    Logger.info("Manual dispatch tick", file=LogFiles.API, **{k: len(v) for k, v in result.to_dict().items()})
    return result.to_dict()
