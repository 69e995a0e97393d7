"""Builds the workflow components from one explicit configuration."""

from __future__ import annotations

from dataclasses import dataclass

from app.services.audit import AuditLedger
from app.services.completion import CompletionEvaluator
from app.services.documents import DocumentService
from app.services.downloads import DownloadTokenService
from app.services.email import EmailDispatcher
from app.services.field_values import FieldValueStore
from app.services.file_fetch import FileFetcher
from app.services.recipients import RecipientStatusTracker
from app.services.signing import SigningRoom
from app.services.signing_sessions import SigningSessionManager
from app.services.workflow_config import WorkflowConfig


@dataclass
class Workflow:
    config: WorkflowConfig
    ledger: AuditLedger
    sessions: SigningSessionManager
    fields: FieldValueStore
    tracker: RecipientStatusTracker
    dispatcher: EmailDispatcher
    fetcher: FileFetcher
    downloads: DownloadTokenService
    evaluator: CompletionEvaluator
    documents: DocumentService
    signing: SigningRoom


def build_workflow(
    config: WorkflowConfig,
    dispatcher: EmailDispatcher | None = None,
    fetcher: FileFetcher | None = None,
) -> Workflow:
    """Wire every component; ``dispatcher`` and ``fetcher`` may be test doubles."""
    ledger = AuditLedger(atomic=config.audit_atomic)
    sessions = SigningSessionManager(config)
    fields = FieldValueStore()
    tracker = RecipientStatusTracker()
    dispatcher = dispatcher or EmailDispatcher(config.email)
    fetcher = fetcher or FileFetcher(config.storage)
    downloads = DownloadTokenService(config, ledger, fetcher)
    evaluator = CompletionEvaluator(config, ledger, tracker, downloads, dispatcher, fetcher)
    documents = DocumentService(config, sessions, tracker, ledger, dispatcher, fetcher)
    signing = SigningRoom(sessions, fields, tracker, evaluator, ledger)
    return Workflow(
        config=config,
        ledger=ledger,
        sessions=sessions,
        fields=fields,
        tracker=tracker,
        dispatcher=dispatcher,
        fetcher=fetcher,
        downloads=downloads,
        evaluator=evaluator,
        documents=documents,
        signing=signing,
    )
