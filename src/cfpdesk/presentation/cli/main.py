"""
CLI entry point

Operator commands for the decision workflow: score, decide, move pipeline status,
schedule / cancel / send decision emails and run one dispatch tick by hand.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from cfpdesk.application.services.scheduled_email_scheduler import format_time_remaining
from cfpdesk.application.services.score_aggregator import format_percent, format_score
from cfpdesk.domain.errors import CfpError
from cfpdesk.domain.scheduled_email import ScheduleEmailOptions

# Load local .env automatically so DB / mail settings are available to the CLI.
load_dotenv(find_dotenv(usecwd=True), override=False)


def create_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser"""
    parser = argparse.ArgumentParser(
        prog="cfpdesk",
        description="cfpdesk - CFP scoring, decisions and speaker notifications",
    )

    subparsers = parser.add_subparsers(dest="command", help="available commands")

    # scores
    scores_parser = subparsers.add_parser("scores", help="show aggregate review scores")
    scores_parser.add_argument("submission_id")
    scores_parser.add_argument(
        "--total-reviewers", type=int, default=None, help="override the committee size"
    )
    scores_parser.add_argument("--json", action="store_true", help="print JSON")

    # decide
    decide_parser = subparsers.add_parser("decide", help="record accept / reject")
    decide_parser.add_argument("submission_id")
    decide_parser.add_argument("decision", choices=["accepted", "rejected"])
    decide_parser.add_argument("--notes", default=None)
    decide_parser.add_argument("--by", dest="decided_by", default=None, help="admin id")

    # set-status
    status_parser = subparsers.add_parser("set-status", help="move submissions in the pipeline")
    status_parser.add_argument("submission_ids", nargs="+")
    status_parser.add_argument("--status", required=True)

    # schedule
    schedule_parser = subparsers.add_parser("schedule", help="queue a decision email")
    schedule_parser.add_argument("submission_id")
    schedule_parser.add_argument("email_type", choices=["acceptance", "rejection"])
    schedule_parser.add_argument("--message", default=None, help="personal message")
    schedule_parser.add_argument("--coupon-discount", type=int, default=None, help="percent off")
    schedule_parser.add_argument("--coupon-days", type=int, default=None, help="coupon validity")
    schedule_parser.add_argument("--feedback", default=None, help="committee feedback text")
    schedule_parser.add_argument("--by", dest="scheduled_by", default=None, help="admin id")

    # emails
    emails_parser = subparsers.add_parser("emails", help="list scheduled emails of a submission")
    emails_parser.add_argument("submission_id")
    emails_parser.add_argument("--json", action="store_true", help="print JSON")

    # cancel
    cancel_parser = subparsers.add_parser("cancel", help="cancel a pending email")
    cancel_parser.add_argument("email_id")
    cancel_parser.add_argument("--by", dest="cancelled_by", default=None, help="admin id")

    # send-now
    send_parser = subparsers.add_parser("send-now", help="send a pending email immediately")
    send_parser.add_argument("email_id")

    # dispatch-tick
    tick_parser = subparsers.add_parser("dispatch-tick", help="send every due email once")
    tick_parser.add_argument("--json", action="store_true", help="print JSON")

    parser.add_argument("--version", "-v", action="store_true", help="show version")

    return parser


_workflow = None


def _get_workflow():
    global _workflow
    if _workflow is None:
        from cfpdesk.application.workflows.decision_workflow import build_default_workflow

        _workflow = build_default_workflow()
    return _workflow


def run_cli(args: Optional[list] = None) -> int:
    """
    Run the CLI.

    Args:
        args: command line arguments (defaults to sys.argv)

    Returns:
        exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print("cfpdesk v0.1.0")
        return 0

    if not parsed.command:
        parser.print_help()
        return 0

    handlers = {
        "scores": _run_scores,
        "decide": _run_decide,
        "set-status": _run_set_status,
        "schedule": _run_schedule,
        "emails": _run_emails,
        "cancel": _run_cancel,
        "send-now": _run_send_now,
        "dispatch-tick": _run_dispatch_tick,
    }
    try:
        return handlers[parsed.command](parsed)
    except (CfpError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _run_scores(parsed: argparse.Namespace) -> int:
    workflow = _get_workflow()
    aggregate = workflow.aggregate_scores(parsed.submission_id)
    scoring = workflow.submission_scoring(parsed.submission_id, parsed.total_reviewers)

    if parsed.json:
        _print_json(
            {
                "aggregate": aggregate.to_dict() if aggregate else None,
                "scoring": scoring.to_dict(),
            }
        )
        return 0

    print(f"reviews: {scoring.review_count}")
    print(f"avg overall: {format_score(scoring.avg_score)}")
    print(f"coverage: {format_percent(scoring.coverage_percent)}")
    print(f"shortlist: {scoring.status.label}")
    if aggregate is not None:
        for dim, value in aggregate.to_dict().items():
            if dim.startswith("avg_") and dim != "avg_overall":
                print(f"  {dim[4:]}: {format_score(value)}")
    return 0


def _run_decide(parsed: argparse.Namespace) -> int:
    decision = _get_workflow().decide(
        parsed.submission_id, parsed.decision, notes=parsed.notes, decided_by=parsed.decided_by
    )
    print(f"{decision.submission_id}: {decision.status.value}")
    return 0


def _run_set_status(parsed: argparse.Namespace) -> int:
    result = _get_workflow().bulk_set_status(parsed.submission_ids, parsed.status)
    for submission_id in result.succeeded_ids:
        print(f"ok     {submission_id} -> {result.status.value}")
    for submission_id, error in result.failed.items():
        print(f"failed {submission_id}: {error}", file=sys.stderr)
    return 0 if result.all_succeeded else 1


def _run_schedule(parsed: argparse.Namespace) -> int:
    options = ScheduleEmailOptions(
        personal_message=parsed.message,
        coupon_discount_percent=parsed.coupon_discount,
        coupon_validity_days=parsed.coupon_days,
        include_feedback=bool(parsed.feedback),
        feedback_text=parsed.feedback,
    )
    email = _get_workflow().schedule_email(
        parsed.submission_id, parsed.email_type, options, scheduled_by=parsed.scheduled_by
    )
    print(f"scheduled {email.email_type.value} email {email.id}")
    print(f"sends at: {email.scheduled_for.isoformat()}")
    if email.coupon:
        print(f"coupon: {email.coupon.code} ({email.coupon.discount_percent}% off)")
    return 0


def _run_emails(parsed: argparse.Namespace) -> int:
    workflow = _get_workflow()
    emails = workflow.scheduler.list_for_submission(parsed.submission_id)

    if parsed.json:
        _print_json({"scheduled_emails": [e.to_dict() for e in emails]})
        return 0

    if not emails:
        print("no scheduled emails")
        return 0
    for email in emails:
        line = f"{email.id}  {email.email_type.value:<10} {email.status.value:<9}"
        if email.is_pending:
            line += f" {format_time_remaining(workflow.scheduler.time_remaining(email))}"
        elif email.failure_reason:
            line += f" {email.failure_reason}"
        print(line)
    return 0


def _run_cancel(parsed: argparse.Namespace) -> int:
    email = _get_workflow().cancel_scheduled_email(parsed.email_id, cancelled_by=parsed.cancelled_by)
    print(f"{email.id}: {email.status.value}")
    return 0


def _run_send_now(parsed: argparse.Namespace) -> int:
    email = _get_workflow().send_now(parsed.email_id)
    print(f"{email.id}: {email.status.value} ({email.provider_message_id})")
    return 0


def _run_dispatch_tick(parsed: argparse.Namespace) -> int:
    result = _get_workflow().tick_dispatch_worker()
    if parsed.json:
        _print_json(result.to_dict())
        return 0
    print(f"sent: {len(result.sent)}")
    print(f"failed: {len(result.failed)}")
    print(f"skipped: {len(result.skipped)}")
    return 0 if not result.failed else 1


if __name__ == "__main__":
    sys.exit(run_cli())
