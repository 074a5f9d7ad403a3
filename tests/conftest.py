# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src to sys.path so `import cfpdesk` works without an install.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from cfpdesk.application.workflows.decision_workflow import DecisionWorkflow  # noqa: E402
from cfpdesk.config.settings import CfpSettings  # noqa: E402
from cfpdesk.infrastructure.stores.decision_store import DecisionStore  # noqa: E402
from cfpdesk.infrastructure.stores.review_store import ReviewStore  # noqa: E402
from cfpdesk.infrastructure.stores.scheduled_email_store import ScheduledEmailStore  # noqa: E402
from cfpdesk.infrastructure.stores.submission_store import SubmissionStore  # noqa: E402
from cfpdesk.utils.logging_config import Logger  # noqa: E402

T0 = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeTransport:
    """Records every send; ``fail_with`` makes the next sends raise, ``on_send`` runs mid-send."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.fail_with: Optional[Exception] = None
        self.on_send: Optional[Callable[[str, str, Dict[str, Any]], None]] = None

    def send(self, to: str, template_type: str, template_data: Dict[str, Any]) -> str:
        self.calls.append({"to": to, "template_type": template_type, "data": dict(template_data)})
        if self.on_send is not None:
            self.on_send(to, template_type, template_data)
        if self.fail_with is not None:
            raise self.fail_with
        return f"msg-{len(self.calls)}"


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path, monkeypatch):
    monkeypatch.setenv("CFPDESK_LOG_DIR", str(tmp_path / "logs"))
    Logger.close()
    yield
    Logger.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cfpdesk.db'}"


@pytest.fixture()
def settings(db_url):
    return CfpSettings(db_url=db_url)


@pytest.fixture()
def workflow(db_url, settings, clock, transport):
    wf = DecisionWorkflow(
        submissions=SubmissionStore(db_url, clock=clock),
        reviews=ReviewStore(db_url, clock=clock),
        decisions=DecisionStore(db_url, clock=clock),
        emails=ScheduledEmailStore(db_url, clock=clock),
        transport=transport,
        settings=settings,
        clock=clock,
    )
    yield wf
    for store in (wf.submissions, wf.reviews, wf.decisions, wf.emails):
        store.close()


@pytest.fixture()
def speaker(workflow):
    return workflow.submissions.create_speaker(
        email="Ada@Example.com", first_name="Ada", last_name="Lovelace"
    )


@pytest.fixture()
def submission(workflow, speaker):
    return workflow.submissions.create_submission(
        speaker_id=speaker.id, title="Streams all the way down"
    )


