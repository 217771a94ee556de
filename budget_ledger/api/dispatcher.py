"""
Tagged-Action Dispatcher

Maps one JSON payload, tagged by its "action" field, onto one engine call
and turns the outcome into a JSON-ready response:

    {"status": "success", ...action-specific data...}
    {"status": "error", "message": "..."}

DESIGN DECISION: Failures are uniform on the wire. Whatever went wrong
(bad payload, rejected write, missing case, storage outage), the caller
gets one error shape and recovers the same way: re-read everything with
readAll. The distinctions survive in the audit trail and the logs.
"""

from typing import Any, Awaitable, Callable

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from budget_ledger.engine import ReconciliationEngine
from budget_ledger.models.actions import (
    AddAction,
    AssignProjectAction,
    DeleteCaseAction,
    DeletePaymentAction,
    DeleteProjectAction,
    LedgerAction,
    ReadAllAction,
    SavePaymentAction,
    SaveSettingsAction,
    UpdateFullCaseAction,
    UpdateProjectAction,
)


logger = structlog.get_logger(__name__)


def _dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _error(message: str) -> dict:
    return {"status": "error", "message": message}


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "Invalid payload: " + "; ".join(parts)


class ActionDispatcher:
    """Server side of the tagged-action channel."""

    def __init__(self, engine: ReconciliationEngine):
        self._engine = engine
        self._adapter = TypeAdapter(LedgerAction)
        self._handlers: dict[type, Callable[[Any], Awaitable[dict]]] = {
            ReadAllAction: self._read_all,
            AddAction: self._add,
            UpdateProjectAction: self._update_project,
            DeleteProjectAction: self._delete_project,
            UpdateFullCaseAction: self._update_full_case,
            AssignProjectAction: self._assign_project,
            DeleteCaseAction: self._delete_case,
            SaveSettingsAction: self._save_settings,
            SavePaymentAction: self._save_payment,
            DeletePaymentAction: self._delete_payment,
        }

    async def dispatch(self, payload: dict) -> dict:
        """Run one action. Never raises for a failed action."""
        try:
            action = self._adapter.validate_python(payload)
        except ValidationError as e:
            logger.warning("action_rejected", action=payload.get("action"), error=str(e))
            return _error(_describe(e))

        handler = self._handlers[type(action)]
        try:
            data = await handler(action)
        except Exception as e:
            logger.warning(
                "action_failed",
                action=action.action,
                error_type=type(e).__name__,
                error=str(e),
            )
            return _error(str(e))

        logger.info("action_succeeded", action=action.action)
        return {"status": "success", **data}

    async def _read_all(self, action: ReadAllAction) -> dict:
        return _dump(await self._engine.load_snapshot())

    async def _add(self, action: AddAction) -> dict:
        records = await self._engine.submit_project(action.to_submission())
        return {"records": [_dump(r) for r in records]}

    async def _update_project(self, action: UpdateProjectAction) -> dict:
        record = await self._engine.update_project(
            action.old_name, action.old_cat, action.to_update()
        )
        return {"record": _dump(record)}

    async def _delete_project(self, action: DeleteProjectAction) -> dict:
        return {"removed": await self._engine.delete_project(action.name)}

    async def _update_full_case(self, action: UpdateFullCaseAction) -> dict:
        case = await self._engine.save_case(action.to_draft())
        return {"case": _dump(case)}

    async def _assign_project(self, action: AssignProjectAction) -> dict:
        names = action.names
        if len(names) == 1:
            changed = {names[0]: await self._engine.assign_project(names[0], action.tender_name)}
        else:
            changed = await self._engine.assign_projects(names, action.tender_name)
        return {"changed": changed}

    async def _delete_case(self, action: DeleteCaseAction) -> dict:
        unlinked, deleted = await self._engine.delete_case(action.name)
        return {"unlinkedProjects": unlinked, "deletedPayments": deleted}

    async def _save_settings(self, action: SaveSettingsAction) -> dict:
        registry = await self._engine.save_settings(action.config)
        return {"settings": _dump(registry)}

    async def _save_payment(self, action: SavePaymentAction) -> dict:
        payment = await self._engine.save_payment(action.to_draft())
        progress = await self._engine.payment_progress(payment.case_link)
        return {"payment": _dump(payment), "progress": _dump(progress)}

    async def _delete_payment(self, action: DeletePaymentAction) -> dict:
        return {"deleted": await self._engine.delete_payment(action.id)}
