"""
Reconciliation Engine

This module owns every write that touches more than one record:
1. Project submission (N category lines as one batch, optional auto-case)
2. Project edits and group-scoped deletes
3. Case create/update with rename cascade, and case delete cascade
4. Project-to-case assignment (single and bulk)
5. Payments and settings

DESIGN DECISION: The store has no foreign keys. Project lines and payments
point at cases by name, and the engine is the only place that keeps those
references consistent:
- Renaming a case rewrites every case link that used the old name
- Deleting a case unassigns its lines and deletes its payments
- A payment can only be saved against a case that exists

Every mutation:
- Is validated before the first store call (nothing written on rejection)
- Runs through the SerialWriter, one at a time
- Is audited under its own correlation ID

Transport failures are not retried here. They propagate to the caller,
whose recovery is a full re-read (see load_snapshot).
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog

from budget_ledger.aggregation import (
    case_overview,
    compute_analysis,
    group_projects,
    payment_progress,
    payments_for_case,
    unassigned_projects,
)
from budget_ledger.audit import AuditLogger, create_correlation_id
from budget_ledger.config import get_settings
from budget_ledger.engine.writer import SerialWriter
from budget_ledger.models.records import (
    UNASSIGNED,
    AnalysisSummary,
    Case,
    CaseDraft,
    CaseOverview,
    CaseStatus,
    LedgerSnapshot,
    Payment,
    PaymentDraft,
    PaymentProgress,
    ProjectCategoryRecord,
    ProjectGroup,
    ProjectSubmission,
    ProjectUpdate,
    SettingsRegistry,
)
from budget_ledger.services.photos import (
    CloudinaryPhotoStorage,
    InlinePhotoStorage,
    PhotoStorageInterface,
)
from budget_ledger.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
)
from budget_ledger.validation import ValidationFailedError, WriteValidator


logger = structlog.get_logger(__name__)

T = TypeVar("T")


# =============================================================================
# ERRORS
# =============================================================================

class ReconciliationError(Exception):
    """Base class for engine-level failures."""
    pass


class BatchSubmissionError(ReconciliationError):
    """
    A multi-category submission failed after some lines were written.

    Attributes:
        name: Project name of the batch
        written: Categories whose lines reached the store
        rolled_back: Categories whose lines were removed again
        torn: True if the store was left holding part of the batch
    """

    def __init__(
        self,
        name: str,
        written: list[str],
        rolled_back: list[str],
        torn: bool,
        cause: Exception,
    ):
        self.name = name
        self.written = written
        self.rolled_back = rolled_back
        self.torn = torn
        self.cause = cause
        state = "left partially written" if torn else "rolled back"
        super().__init__(f"Submission of '{name}' failed and was {state}: {cause}")


class BulkAssignmentError(ReconciliationError):
    """Some assignments of a bulk assign failed. The others were applied."""

    def __init__(self, case_name: str, failed: dict[str, Exception], applied: dict[str, int]):
        self.case_name = case_name
        self.failed = failed
        self.applied = applied
        names = ", ".join(failed)
        super().__init__(f"Assignment to '{case_name}' failed for: {names}")


# =============================================================================
# ENGINE
# =============================================================================

class ReconciliationEngine:
    """
    Cross-collection writes and derived reads over one record store.

    Usage:
        engine = ReconciliationEngine(InMemoryRecordStore())
        await engine.submit_project(ProjectSubmission(...))
        snapshot = await engine.load_snapshot()
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        photo_storage: Optional[PhotoStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[WriteValidator] = None,
        writer: Optional[SerialWriter] = None,
        strict_grouping: Optional[bool] = None,
        rollback_partial_batches: Optional[bool] = None,
    ):
        app = get_settings().app
        self._store = store
        self._photo_storage = photo_storage or InlinePhotoStorage()
        self._audit_logger = audit_logger
        self._validator = validator or WriteValidator()
        self._writer = writer or SerialWriter()
        self._strict_grouping = (
            app.strict_grouping if strict_grouping is None else strict_grouping
        )
        self._rollback = (
            app.rollback_partial_batches
            if rollback_partial_batches is None
            else rollback_partial_batches
        )

    @property
    def store(self) -> RecordStoreInterface:
        return self._store

    @property
    def writer(self) -> SerialWriter:
        return self._writer

    # -------------------------------------------------------------------------
    # plumbing
    # -------------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        body: Callable[[UUID], Awaitable[T]],
        correlation_id: Optional[UUID] = None,
    ) -> T:
        """Queue `body` on the writer and audit its failure."""
        correlation_id = correlation_id or create_correlation_id()

        async def job() -> T:
            try:
                return await body(correlation_id)
            except ValidationFailedError as e:
                if self._audit_logger:
                    await self._audit_logger.log_validation_failed(
                        operation=operation,
                        issues=[
                            {"field": i.field, "type": i.issue_type, "message": i.message}
                            for i in e.result.issues
                        ],
                        correlation_id=correlation_id,
                    )
                raise
            except Exception as e:
                logger.warning(
                    "operation_failed",
                    operation=operation,
                    error=str(e),
                    correlation_id=str(correlation_id),
                )
                if self._audit_logger:
                    await self._audit_logger.log_operation_failed(
                        operation=operation,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                raise

        return await self._writer.submit(operation, job, correlation_id)

    async def _find_case(self, name: str) -> Optional[Case]:
        for case in await self._store.list_cases():
            if case.name == name:
                return case
        return None

    # -------------------------------------------------------------------------
    # projects
    # -------------------------------------------------------------------------

    async def submit_project(
        self,
        submission: ProjectSubmission,
        correlation_id: Optional[UUID] = None,
    ) -> list[ProjectCategoryRecord]:
        """
        Create one record per filled category line, as one batch.

        Blank lines are skipped. Photos are persisted once and their URLs
        go on the first record only. With auto_case, a case named after
        the project is created (status bidding, awarded total 0, budget =
        sum of the lines) unless one already exists, and every new line
        is linked to it.

        Raises:
            ValidationFailedError: request rejected, nothing written
            DuplicateError: a (name, category) line already exists
            BatchSubmissionError: a line write failed mid-batch
        """
        return await self._run(
            "submit_project",
            lambda cid: self._submit_project(submission, cid),
            correlation_id,
        )

    async def _submit_project(
        self,
        submission: ProjectSubmission,
        correlation_id: UUID,
    ) -> list[ProjectCategoryRecord]:
        settings = await self._store.load_settings()
        self._validator.require_valid(
            self._validator.validate_submission(submission, settings)
        )

        lines = submission.filled_lines
        current = await self._store.list_projects()
        existing = {record.key for record in current}
        taken = [line.category for line in lines if (submission.name, line.category) in existing]
        if taken:
            raise DuplicateError(
                f"Project '{submission.name}' already has lines for: {', '.join(taken)}"
            )

        photo_urls = []
        if submission.photos:
            photo_urls = await self._photo_storage.store(submission.name, submission.photos)

        case_link = UNASSIGNED
        created_case: Optional[Case] = None
        grown_case: Optional[Case] = None
        previous_case: Optional[Case] = None
        if submission.auto_case:
            case_link = submission.name
            batch_total = sum((line.amount for line in lines), Decimal("0"))
            found = await self._find_case(submission.name)
            if found is None:
                created_case = Case(
                    name=submission.name,
                    proposed_budget=batch_total,
                    awarded_total=Decimal("0"),
                    status=CaseStatus.BIDDING,
                )
            else:
                # The form sends one add per category; a case holding only this
                # project's lines is its auto-case and grows with each batch.
                linked = [r for r in current if r.case_link == found.name]
                if linked and all(r.name == submission.name for r in linked):
                    previous_case = found
                    grown_case = found.model_copy(update={
                        "proposed_budget": found.proposed_budget + batch_total,
                        "updated_at": datetime.utcnow(),
                    })

        records = [
            ProjectCategoryRecord(
                name=submission.name,
                content=submission.content,
                location=submission.location,
                proposed_by=submission.proposed_by,
                assigned_staff=submission.assigned_staff,
                amount=line.amount,
                category=line.category,
                case_link=case_link,
                photo_urls=photo_urls if index == 0 else [],
            )
            for index, line in enumerate(lines)
        ]

        if created_case is not None:
            await self._store.upsert_case(created_case)
        if grown_case is not None:
            await self._store.upsert_case(grown_case)

        written: list[str] = []
        try:
            for record in records:
                await self._store.upsert_project(record)
                written.append(record.category)
        except Exception as e:
            await self._abandon_batch(
                submission.name, written, created_case, e, correlation_id,
                previous_case=previous_case,
            )

        if self._audit_logger:
            await self._audit_logger.log_project_submitted(
                name=submission.name,
                categories=written,
                auto_case=submission.auto_case,
                correlation_id=correlation_id,
            )
            saved_case = created_case or grown_case
            if saved_case is not None:
                await self._audit_logger.log_case_saved(
                    name=saved_case.name,
                    awarded_total=str(saved_case.awarded_total),
                    created=created_case is not None,
                    correlation_id=correlation_id,
                )

        return records

    async def _abandon_batch(
        self,
        name: str,
        written: list[str],
        created_case: Optional[Case],
        cause: Exception,
        correlation_id: UUID,
        previous_case: Optional[Case] = None,
    ) -> None:
        """Undo what a failed batch wrote (when enabled), then raise."""
        rolled_back: list[str] = []
        torn = bool(written)

        if self._rollback:
            torn = False
            for category in written:
                try:
                    await self._store.delete_project(name, category)
                    rolled_back.append(category)
                except Exception as e:
                    torn = True
                    logger.error(
                        "rollback_failed",
                        project=name,
                        category=category,
                        error=str(e),
                        correlation_id=str(correlation_id),
                    )
            if created_case is not None:
                try:
                    await self._store.delete_case(created_case.name)
                except Exception as e:
                    torn = True
                    logger.error(
                        "rollback_failed",
                        case=created_case.name,
                        error=str(e),
                        correlation_id=str(correlation_id),
                    )
            if previous_case is not None:
                try:
                    await self._store.upsert_case(previous_case)
                except Exception as e:
                    torn = True
                    logger.error(
                        "rollback_failed",
                        case=previous_case.name,
                        error=str(e),
                        correlation_id=str(correlation_id),
                    )

        if self._audit_logger:
            await self._audit_logger.log_batch_rolled_back(
                name=name,
                written=written,
                rolled_back=rolled_back,
                torn=torn,
                correlation_id=correlation_id,
            )

        raise BatchSubmissionError(name, written, rolled_back, torn, cause) from cause

    async def update_project(
        self,
        old_name: str,
        old_category: str,
        update: ProjectUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> ProjectCategoryRecord:
        """
        Rewrite one line in place.

        A new category moves that single line to the new category; the rest
        of the group is untouched. The case link and photos are kept.
        """
        return await self._run(
            "update_project",
            lambda cid: self._update_project(old_name, old_category, update, cid),
            correlation_id,
        )

    async def _update_project(
        self,
        old_name: str,
        old_category: str,
        update: ProjectUpdate,
        correlation_id: UUID,
    ) -> ProjectCategoryRecord:
        settings = await self._store.load_settings()
        self._validator.require_valid(
            self._validator.validate_project_update(update, settings)
        )

        old_key = (old_name, old_category)
        new_key = (update.name, update.category)
        records = await self._store.list_projects()

        current = next((r for r in records if r.key == old_key), None)
        if current is None:
            raise NotFoundError(f"No project line {old_name} / {old_category}")
        if new_key != old_key and any(r.key == new_key for r in records):
            raise DuplicateError(f"Project line {update.name} / {update.category} already exists")

        updated = current.model_copy(update={
            "name": update.name,
            "content": update.content,
            "location": update.location,
            "proposed_by": update.proposed_by,
            "assigned_staff": update.assigned_staff,
            "amount": update.amount,
            "category": update.category,
        })
        await self._store.upsert_project(updated, key=old_key)

        if self._audit_logger:
            await self._audit_logger.log_project_updated(
                old_key=old_key,
                new_key=new_key,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_project(
        self,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete every line of the project (group-scoped, unlike update).

        The linked case, if any, is left alone. Returns the number of
        lines removed.
        """
        return await self._run(
            "delete_project",
            lambda cid: self._delete_project(name, cid),
            correlation_id,
        )

    async def _delete_project(self, name: str, correlation_id: UUID) -> int:
        removed = 0
        for record in await self._store.list_projects():
            if record.name == name:
                if await self._store.delete_project(record.name, record.category):
                    removed += 1

        if self._audit_logger:
            await self._audit_logger.log_project_deleted(
                name=name,
                removed=removed,
                correlation_id=correlation_id,
            )
        return removed

    # -------------------------------------------------------------------------
    # cases
    # -------------------------------------------------------------------------

    async def save_case(
        self,
        draft: CaseDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Case:
        """
        Create a case (empty old_name) or update the one stored as old_name.

        Awarded total: the breakdown sum when a breakdown is given, else the
        explicit total, else the stored value. On rename, every project line
        and payment linked to the old name is relinked to the new one.
        """
        return await self._run(
            "save_case",
            lambda cid: self._save_case(draft, cid),
            correlation_id,
        )

    async def _save_case(self, draft: CaseDraft, correlation_id: UUID) -> Case:
        self._validator.require_valid(self._validator.validate_case(draft))

        cases = {case.name: case for case in await self._store.list_cases()}
        existing: Optional[Case] = None
        if draft.old_name:
            existing = cases.get(draft.old_name)
            if existing is None:
                raise NotFoundError(f"No case named '{draft.old_name}'")
        renamed = existing is not None and draft.new_name != existing.name
        if (existing is None or renamed) and draft.new_name in cases:
            raise DuplicateError(f"Case '{draft.new_name}' already exists")

        if draft.breakdown is not None:
            breakdown, awarded = draft.breakdown, draft.breakdown.total
        elif draft.total is not None:
            breakdown, awarded = None, draft.total
        elif existing is not None:
            breakdown, awarded = existing.breakdown, existing.awarded_total
        else:
            breakdown, awarded = None, Decimal("0")

        case = Case(
            name=draft.new_name,
            proposed_budget=draft.proposed_budget,
            awarded_total=awarded,
            status=draft.status,
            vendor=draft.vendor,
            award_date=draft.award_date,
            duration=draft.duration,
            breakdown=breakdown,
        )
        # Relink before renaming the row: a failed cascade leaves the old
        # name in place, so repeating the same rename finishes the job.
        if renamed:
            await self._relink(existing.name, case.name, correlation_id)

        await self._store.upsert_case(case, key=existing.name if existing else None)

        if self._audit_logger:
            await self._audit_logger.log_case_saved(
                name=case.name,
                awarded_total=str(case.awarded_total),
                created=existing is None,
                correlation_id=correlation_id,
            )

        return case

    async def _relink(self, old_name: str, new_name: str, correlation_id: UUID) -> None:
        relinked_projects = 0
        for record in await self._store.list_projects():
            if record.case_link == old_name:
                await self._store.upsert_project(record.model_copy(update={"case_link": new_name}))
                relinked_projects += 1

        relinked_payments = 0
        for payment in await self._store.list_payments():
            if payment.case_link == old_name:
                await self._store.upsert_payment(payment.model_copy(update={"case_link": new_name}))
                relinked_payments += 1

        if self._audit_logger:
            await self._audit_logger.log_case_renamed(
                old_name=old_name,
                new_name=new_name,
                relinked_projects=relinked_projects,
                relinked_payments=relinked_payments,
                correlation_id=correlation_id,
            )

    async def delete_case(
        self,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[int, int]:
        """
        Delete a case and cascade.

        Linked lines go back to unassigned and the case's payments are
        deleted, before the case row itself, so a retry after a failure
        finishes the job.

        Returns:
            (unlinked_projects, deleted_payments)
        """
        return await self._run(
            "delete_case",
            lambda cid: self._delete_case(name, cid),
            correlation_id,
        )

    async def _delete_case(self, name: str, correlation_id: UUID) -> tuple[int, int]:
        if await self._find_case(name) is None:
            raise NotFoundError(f"No case named '{name}'")

        unlinked = 0
        for record in await self._store.list_projects():
            if record.case_link == name:
                await self._store.upsert_project(record.model_copy(update={"case_link": UNASSIGNED}))
                unlinked += 1

        deleted = 0
        for payment in await self._store.list_payments():
            if payment.case_link == name:
                if await self._store.delete_payment(payment.id):
                    deleted += 1

        await self._store.delete_case(name)

        if self._audit_logger:
            await self._audit_logger.log_case_deleted(
                name=name,
                unlinked_projects=unlinked,
                deleted_payments=deleted,
                correlation_id=correlation_id,
            )
        return unlinked, deleted

    # -------------------------------------------------------------------------
    # assignment
    # -------------------------------------------------------------------------

    async def assign_project(
        self,
        project_name: str,
        case_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Link every line of a project to a case, or unassign it with UNASSIGNED.

        Lines already pointing at the target are not rewritten, so repeating
        an assignment is a no-op. Returns the number of lines changed.
        """
        return await self._run(
            "assign_project",
            lambda cid: self._assign_project(project_name, case_name, cid),
            correlation_id,
        )

    async def _assign_project(
        self,
        project_name: str,
        case_name: str,
        correlation_id: UUID,
    ) -> int:
        case_name = case_name or UNASSIGNED
        lines = [r for r in await self._store.list_projects() if r.name == project_name]
        if not lines:
            raise NotFoundError(f"No project named '{project_name}'")
        if case_name != UNASSIGNED and await self._find_case(case_name) is None:
            raise NotFoundError(f"No case named '{case_name}'")

        changed = 0
        for record in lines:
            if record.case_link != case_name:
                await self._store.upsert_project(record.model_copy(update={"case_link": case_name}))
                changed += 1

        if self._audit_logger:
            await self._audit_logger.log_project_assigned(
                name=project_name,
                case_name=case_name,
                changed=changed,
                correlation_id=correlation_id,
            )
        return changed

    async def assign_projects(self, project_names: list[str], case_name: str) -> dict[str, int]:
        """
        Bulk variant: one independent assignment per project name.

        Each assignment is its own writer job with its own correlation ID,
        so one failure does not undo the others.

        Raises:
            BulkAssignmentError: listing the names that failed
        """
        names = list(dict.fromkeys(project_names))
        results = await asyncio.gather(
            *(self.assign_project(name, case_name) for name in names),
            return_exceptions=True,
        )

        applied: dict[str, int] = {}
        failed: dict[str, Exception] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                failed[name] = result
            else:
                applied[name] = result

        if failed:
            raise BulkAssignmentError(case_name, failed, applied)
        return applied

    # -------------------------------------------------------------------------
    # payments
    # -------------------------------------------------------------------------

    async def save_payment(
        self,
        draft: PaymentDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Payment:
        """
        Create a payment (empty id) or overwrite the one with that id.

        Paying more than the awarded total is allowed and logged as a warning.
        """
        return await self._run(
            "save_payment",
            lambda cid: self._save_payment(draft, cid),
            correlation_id,
        )

    async def _save_payment(self, draft: PaymentDraft, correlation_id: UUID) -> Payment:
        self._validator.require_valid(self._validator.validate_payment(draft))

        case = await self._find_case(draft.case_name)
        if case is None:
            raise NotFoundError(f"No case named '{draft.case_name}'")

        fields = dict(
            case_link=draft.case_name,
            stage=draft.stage,
            amount=draft.amount,
            paid_on=draft.paid_on,
            invoice=draft.invoice,
        )
        payment = Payment(id=draft.id, **fields) if draft.id else Payment(**fields)

        payments = await self._store.list_payments()
        previous = next((p for p in payments if p.id == payment.id), None)
        if previous is not None:
            payment = payment.model_copy(update={"created_at": previous.created_at})
        await self._store.upsert_payment(payment)

        if self._audit_logger:
            await self._audit_logger.log_payment_saved(
                payment_id=payment.id,
                case_name=payment.case_link,
                amount=str(payment.amount),
                correlation_id=correlation_id,
            )

        after = [p for p in payments if p.id != payment.id] + [payment]
        progress = payment_progress(case.name, after, case)
        if progress.over_disbursed:
            logger.warning(
                "over_disbursement",
                case=case.name,
                paid=str(progress.paid),
                awarded_total=str(progress.awarded_total),
            )
            if self._audit_logger:
                await self._audit_logger.log_over_disbursement(
                    case_name=case.name,
                    paid=str(progress.paid),
                    awarded_total=str(progress.awarded_total),
                    correlation_id=correlation_id,
                )

        return payment

    async def delete_payment(
        self,
        payment_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        return await self._run(
            "delete_payment",
            lambda cid: self._delete_payment(payment_id, cid),
            correlation_id,
        )

    async def _delete_payment(self, payment_id: str, correlation_id: UUID) -> bool:
        deleted = await self._store.delete_payment(payment_id)
        if not deleted:
            raise NotFoundError(f"No payment with id '{payment_id}'")
        if self._audit_logger:
            await self._audit_logger.log_payment_deleted(
                payment_id=payment_id,
                correlation_id=correlation_id,
            )
        return deleted

    # -------------------------------------------------------------------------
    # settings
    # -------------------------------------------------------------------------

    async def load_settings(self) -> SettingsRegistry:
        return await self._store.load_settings()

    async def save_settings(
        self,
        registry: SettingsRegistry,
        correlation_id: Optional[UUID] = None,
    ) -> SettingsRegistry:
        """Replace the registry wholesale. Existing records are not re-checked."""
        return await self._run(
            "save_settings",
            lambda cid: self._save_settings(registry, cid),
            correlation_id,
        )

    async def _save_settings(self, registry: SettingsRegistry, correlation_id: UUID) -> SettingsRegistry:
        self._validator.require_valid(self._validator.validate_settings(registry))
        await self._store.save_settings(registry)

        if self._audit_logger:
            await self._audit_logger.log_settings_saved(
                categories=len(registry.categories),
                suggesters=len(registry.suggesters),
                staff=len(registry.staff),
                correlation_id=correlation_id,
            )
        return registry

    # -------------------------------------------------------------------------
    # reads (never queued)
    # -------------------------------------------------------------------------

    async def load_snapshot(self) -> LedgerSnapshot:
        """
        Full re-read of every collection, after the store's sync barrier.

        This is the recovery path after any failed write.
        """
        await self._store.sync_barrier()
        projects = await self._store.list_projects()
        settings = await self._store.load_settings()
        return LedgerSnapshot(
            projects=projects,
            cases=await self._store.list_cases(),
            payments=await self._store.list_payments(),
            settings=settings,
            analysis=compute_analysis(projects, settings),
        )

    async def grouped_projects(self) -> dict[str, ProjectGroup]:
        return group_projects(await self._store.list_projects(), strict=self._strict_grouping)

    async def unassigned_projects(self) -> dict[str, ProjectGroup]:
        """Projects available for assignment, grouped."""
        return group_projects(
            unassigned_projects(await self._store.list_projects()),
            strict=self._strict_grouping,
        )

    async def analysis(self) -> AnalysisSummary:
        return compute_analysis(
            await self._store.list_projects(),
            await self._store.load_settings(),
        )

    async def payment_history(self, case_name: str) -> list[Payment]:
        return payments_for_case(case_name, await self._store.list_payments())

    async def payment_progress(self, case_name: str) -> PaymentProgress:
        return payment_progress(
            case_name,
            await self._store.list_payments(),
            await self._find_case(case_name),
        )

    async def case_overview(self) -> list[CaseOverview]:
        return case_overview(
            await self._store.list_cases(),
            await self._store.list_projects(),
            await self._store.list_payments(),
        )


# =============================================================================
# FACTORY
# =============================================================================

def create_engine(storage_backend: Optional[str] = None) -> ReconciliationEngine:
    """
    Build an engine from configuration.

    Args:
        storage_backend: "memory" or "google_sheets"; defaults to
                        AppSettings.storage_backend.

    With Google Sheets, the audit trail is persisted to the audit
    worksheet as well. Otherwise audit events are logged locally only.
    Google Sheets needs the Cloudinary photo backend.
    """
    app = get_settings().app
    backend = storage_backend or app.storage_backend

    if backend == "google_sheets" and app.photo_backend == "inline":
        # A data URI of any real photo is longer than one Sheets cell allows
        raise ValueError(
            "Inline photos cannot be stored in Google Sheets; set PHOTO_BACKEND=cloudinary"
        )

    if backend == "google_sheets":
        client = GoogleSheetsClient()
        store: RecordStoreInterface = GoogleSheetsRecordStore(client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(client))
    elif backend == "memory":
        store = InMemoryRecordStore()
        audit_logger = AuditLogger()
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    if app.photo_backend == "cloudinary":
        photo_storage: PhotoStorageInterface = CloudinaryPhotoStorage()
    else:
        photo_storage = InlinePhotoStorage()

    logger.info("engine_created", storage_backend=backend, photo_backend=app.photo_backend)

    return ReconciliationEngine(
        store,
        photo_storage=photo_storage,
        audit_logger=audit_logger,
    )
