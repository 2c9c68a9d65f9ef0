"""
ApprovalService -- the review side of the journal approval gate.

Responsibility:
    Decides pending approval requests raised by JournalService.  Approving
    performs the deferred effect (posts the entry, or voids it with a
    reversal) and stamps reviewer and timestamp.  Rejecting requires a note.

Architecture position:
    Kernel > Services -- imperative shell.  Composes a flush-only
    JournalService in the same session and owns the transaction boundary.

State machine (journal entry ``approval_status``):
    APPROVED -> no-op
    PENDING  -> APPROVED   POST request: entry becomes posted.
                           VOID request: entry is voided and reversed.
    PENDING  -> REJECTED   POST request: entry is voided with reason
                           "Rejected: <notes>" (never reached the ledger).
                           VOID request: the void is refused; the entry stays
                           posted and returns to APPROVED.

Failure modes:
    - ApprovalRequestNotFoundError, ApprovalNotPendingError,
      RejectionNotesRequiredError.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from ledger_kernel.domain.approval import ApprovalAction, ApprovalStatus
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import (
    ApprovalNotPendingError,
    ApprovalRequestNotFoundError,
    RejectionNotesRequiredError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.approval import ApprovalRequest
from ledger_kernel.services.base import BaseService, OperationResult
from ledger_kernel.services.journal_service import JournalService

logger = get_logger("services.approval")


@dataclass(frozen=True)
class ApprovalResult(OperationResult):
    """Result of approving or rejecting a request."""

    request_id: int | None = None
    entry_id: int | None = None
    status: str | None = None
    reversal_entry_id: int | None = None


class ApprovalService(BaseService):
    """Approve or reject pending journal approval requests."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self._journal = JournalService(session, clock=self.clock, auto_commit=False)

    def list_pending(self) -> list[ApprovalRequest]:
        return self._journal.list_pending_approvals()

    def approve(self, request_id: int, reviewer_id: int) -> ApprovalResult:
        def work() -> ApprovalResult:
            request = self._load_pending(request_id)
            entry = request.entry
            now = self.clock.now_utc()
            reversal_id = None

            entry.approval_status = ApprovalStatus.APPROVED.value
            entry.approved_by_id = reviewer_id
            entry.approved_at = now
            if request.action == ApprovalAction.POST.value:
                entry.is_posted = True
                message = f"Journal entry {entry.entry_ref} approved and posted"
            else:
                outcome = self._journal.void_entry(
                    entry,
                    request.reason or "Approved void",
                    reviewer_id,
                    bypass_approval=True,
                )
                reversal_id = outcome.reversal.id
                message = f"Journal entry {entry.entry_ref} voided after approval"

            self._close(request, ApprovalStatus.APPROVED, reviewer_id, None)
            logger.info(
                "approval_request_approved",
                extra={
                    "request_id": request.id,
                    "entry_id": entry.id,
                    "action": request.action,
                    "reviewer_id": reviewer_id,
                },
            )
            return ApprovalResult(
                success=True,
                message=message,
                request_id=request.id,
                entry_id=entry.id,
                status=ApprovalStatus.APPROVED.value,
                reversal_entry_id=reversal_id,
            )

        return self._execute("approve_request", work, ApprovalResult)

    def reject(self, request_id: int, reviewer_id: int, notes: str) -> ApprovalResult:
        def work() -> ApprovalResult:
            if not notes or not notes.strip():
                raise RejectionNotesRequiredError()
            request = self._load_pending(request_id)
            entry = request.entry

            self._close(request, ApprovalStatus.REJECTED, reviewer_id, notes.strip())
            if request.action == ApprovalAction.POST.value:
                self._journal.discard_unposted(entry, f"Rejected: {notes.strip()}", reviewer_id)
                message = f"Journal entry {entry.entry_ref} rejected and voided"
            else:
                entry.approval_status = ApprovalStatus.APPROVED.value
                entry.updated_by_id = reviewer_id
                message = f"Void of journal entry {entry.entry_ref} rejected"

            self.session.flush()
            logger.info(
                "approval_request_rejected",
                extra={
                    "request_id": request.id,
                    "entry_id": entry.id,
                    "action": request.action,
                    "reviewer_id": reviewer_id,
                },
            )
            return ApprovalResult(
                success=True,
                message=message,
                request_id=request.id,
                entry_id=entry.id,
                status=ApprovalStatus.REJECTED.value,
            )

        return self._execute("reject_request", work, ApprovalResult)

    def _load_pending(self, request_id: int) -> ApprovalRequest:
        request = self.session.get(ApprovalRequest, request_id)
        if request is None:
            raise ApprovalRequestNotFoundError(request_id)
        if request.status != ApprovalStatus.PENDING.value:
            raise ApprovalNotPendingError(request_id, request.status)
        return request

    def _close(
        self,
        request: ApprovalRequest,
        status: ApprovalStatus,
        reviewer_id: int,
        notes: str | None,
    ) -> None:
        request.status = status.value
        request.reviewed_by_id = reviewer_id
        request.reviewed_at = self.clock.now_utc()
        request.review_notes = notes
