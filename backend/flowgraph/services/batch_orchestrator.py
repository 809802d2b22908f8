"""
Bulk operations across many workflows.

Targets are processed in chunks: items inside a chunk run concurrently and the
next chunk starts only when the whole chunk has settled. Every item's outcome is
recorded individually; a failing item does not stop the batch unless
``continue_on_error`` is off.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from flowgraph.core.config import settings
from flowgraph.schemas.batch import BackupEntry, BatchItem, BatchResult
from flowgraph.schemas.tools import BatchFilter, BatchOptions, BatchParams, BatchTargets
from flowgraph.schemas.workflow import Workflow
from flowgraph.services.execution_tracer import wait_for_execution
from flowgraph.services.workflow_migrations import apply_migrations, migration_label
from flowgraph.services.workflow_validator import ensure_activatable
from flowgraph.utils.exceptions import BatchAbortedError, FlowGraphException, ValidationError
from flowgraph.utils.json_values import deep_clone


DESTRUCTIVE_OPERATIONS = ("update", "delete", "migrate")

# Server-managed fields dropped when a workflow payload is copied into a new one.
SERVER_FIELDS = ("id", "createdAt", "updatedAt", "versionId", "shared", "isArchived")


class BatchItemFailed(FlowGraphException):
    """Raised by an item worker when the item ran but did not succeed."""

    code = "execution_failed"

    def __init__(self, message: str, payload: Any = None, code: Optional[str] = None):
        super().__init__(message)
        self.payload = payload
        if code:
            self.code = code


def chunked(items: Sequence[Any], size: int) -> List[List[Any]]:
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def matches_filter(workflow: Workflow, flt: BatchFilter) -> bool:
    if flt.tags and not set(flt.tags) & set(workflow.tags):
        return False
    if flt.status == "active" and not workflow.active:
        return False
    if flt.status == "inactive" and workflow.active:
        return False
    if flt.name_pattern and not re.search(flt.name_pattern, workflow.name, re.IGNORECASE):
        return False
    if flt.node_type and not any(node.type == flt.node_type for node in workflow.nodes):
        return False
    return True


class BatchOrchestrator:
    """Runs one batch operation against a workflow store."""

    def __init__(self, store, poll_interval: Optional[float] = None):
        self.store = store
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.EXECUTION_POLL_INTERVAL_SECONDS
        )

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    async def resolve_targets(self, targets: BatchTargets) -> List[str]:
        """Explicit ids first, then filter matches, without duplicates."""
        resolved: List[str] = []
        seen = set()
        for workflow_id in targets.workflow_ids:
            if workflow_id not in seen:
                seen.add(workflow_id)
                resolved.append(workflow_id)

        flt = targets.filter
        if flt is not None and not flt.is_empty():
            for workflow in await self.store.list_workflows():
                if workflow.id is None or workflow.id in seen:
                    continue
                candidate = workflow
                if flt.node_type and not workflow.nodes:
                    candidate = await self.store.get_workflow(workflow.id)
                if matches_filter(candidate, flt):
                    seen.add(workflow.id)
                    resolved.append(workflow.id)

        logger.info(f"Resolved {len(resolved)} batch target(s)")
        return resolved

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, params: BatchParams) -> BatchResult:
        operation = params.operation
        options = params.options

        if operation == "create":
            units: List[Any] = list(enumerate(params.data["workflows"]))
        else:
            units = await self.resolve_targets(params.targets)

        result = BatchResult(operation=operation, total=len(units), dry_run=options.dry_run)
        if not units:
            logger.info(f"Batch {operation}: no targets matched")
            return result.finalize()

        if options.dry_run:
            await self._preview(result, operation, units, params.data, options)
            return result.finalize()

        if options.backup and operation in DESTRUCTIVE_OPERATIONS:
            result.backups = await self.create_backups(units, options.concurrent)

        worker = self._worker_for(operation, params.data, options)
        stopped_by = await self._run_chunks(result, units, worker, options)
        if stopped_by is not None:
            result.finalize()
            raise BatchAbortedError(
                f"Batch {operation} stopped after a failed item: {stopped_by}",
                result=result.model_dump(mode="json", exclude_none=True),
                cause=stopped_by,
            )
        logger.info(
            f"Batch {operation} finished: {len(result.successful)} succeeded, {len(result.failed)} failed"
        )
        return result.finalize()

    async def _run_chunks(
        self,
        result: BatchResult,
        units: Sequence[Any],
        worker: Callable[[Any], Awaitable[BatchItem]],
        options: BatchOptions,
    ) -> Optional[Exception]:
        """Run every chunk; returns the error that stopped the batch, if any."""
        for index, chunk in enumerate(chunked(units, options.concurrent)):
            outcomes = await asyncio.gather(*(self._run_item(worker, unit) for unit in chunk))
            first_error: Optional[Exception] = None
            for item, error in outcomes:
                if error is None:
                    result.successful.append(item)
                else:
                    result.failed.append(item)
                    first_error = first_error or error
            if first_error is not None and not options.continue_on_error:
                logger.warning(f"Batch stopped after chunk {index + 1}: {first_error}")
                return first_error
        return None

    async def _run_item(
        self, worker: Callable[[Any], Awaitable[BatchItem]], unit: Any
    ) -> Tuple[BatchItem, Optional[Exception]]:
        try:
            return await worker(unit), None
        except Exception as e:
            item_id, name = self._describe_unit(unit)
            logger.warning(f"Batch item {item_id or name} failed: {e}")
            return (
                BatchItem(
                    id=item_id,
                    name=name,
                    status="failed",
                    error=str(e),
                    result=getattr(e, "payload", None),
                ),
                e,
            )

    @staticmethod
    def _describe_unit(unit: Any) -> Tuple[Optional[str], Optional[str]]:
        if isinstance(unit, tuple):
            index, payload = unit
            name = payload.get("name") if isinstance(payload, dict) else None
            return str(index), name
        return str(unit), None

    # ------------------------------------------------------------------
    # Dry run and backup
    # ------------------------------------------------------------------

    async def _preview(
        self,
        result: BatchResult,
        operation: str,
        units: Sequence[Any],
        data: Dict[str, Any],
        options: BatchOptions,
    ) -> None:
        async def describe(unit: Any) -> BatchItem:
            if operation == "create":
                index, payload = unit
                payload = payload if isinstance(payload, dict) else {}
                return BatchItem(
                    id=str(index),
                    name=payload.get("name"),
                    status="would_create",
                    result={"node_count": len(payload.get("nodes") or [])},
                )
            workflow = await self.store.get_workflow(unit)
            preview: Dict[str, Any] = {"node_count": len(workflow.nodes), "active": workflow.active}
            if operation == "update":
                preview["changes"] = sorted(data["updates"].keys())
            elif operation == "migrate":
                preview["migrations"] = [migration_label(rule) for rule in data["migrations"]]
            return BatchItem(id=unit, name=workflow.name, status=f"would_{operation}", result=preview)

        await self._run_chunks(result, units, describe, options.model_copy(update={"continue_on_error": True}))

    async def create_backups(self, workflow_ids: Iterable[str], concurrent: int) -> List[BackupEntry]:
        """Capture every target before any mutation; failures are recorded per item."""
        async def capture(workflow_id: str) -> BackupEntry:
            try:
                workflow = await self.store.get_workflow(workflow_id)
                return BackupEntry(id=workflow_id, backup=workflow.to_payload(), timestamp=_now_iso())
            except Exception as e:
                logger.warning(f"Backup of workflow {workflow_id} failed: {e}")
                return BackupEntry(id=workflow_id, error=str(e), timestamp=_now_iso())

        backups: List[BackupEntry] = []
        for chunk in chunked(list(workflow_ids), concurrent):
            backups.extend(await asyncio.gather(*(capture(workflow_id) for workflow_id in chunk)))
        return backups

    # ------------------------------------------------------------------
    # Item workers
    # ------------------------------------------------------------------

    def _worker_for(self, operation: str, data: Dict[str, Any], options: BatchOptions):
        workers = {
            "create": lambda unit: self._create_one(unit[1]),
            "update": lambda workflow_id: self._update_one(workflow_id, data["updates"]),
            "delete": self._delete_one,
            "execute": lambda workflow_id: self._execute_one(workflow_id, data.get("input"), options.timeout),
            "activate": self._activate_one,
            "deactivate": self._deactivate_one,
            "clone": lambda workflow_id: self._clone_one(workflow_id, data.get("name_prefix")),
            "migrate": lambda workflow_id: self._migrate_one(workflow_id, data["migrations"]),
        }
        if operation not in workers:
            raise ValidationError(f"Unsupported batch operation: {operation}", field="operation")
        return workers[operation]

    async def _create_one(self, payload: Dict[str, Any]) -> BatchItem:
        if not isinstance(payload, dict):
            raise ValidationError("workflow payload must be an object", field="workflows")
        workflow = Workflow.model_validate(deep_clone(payload))
        created = await self.store.create_workflow(workflow)
        return BatchItem(id=created.id, name=created.name, status="created")

    async def _update_one(self, workflow_id: str, updates: Dict[str, Any]) -> BatchItem:
        current = await self.store.get_workflow(workflow_id)
        merged = current.to_payload()
        merged.update(deep_clone(updates))
        updated = await self.store.update_workflow(workflow_id, Workflow.model_validate(merged))
        return BatchItem(id=workflow_id, name=updated.name, status="updated", result={"changes": sorted(updates)})

    async def _delete_one(self, workflow_id: str) -> BatchItem:
        await self.store.delete_workflow(workflow_id)
        return BatchItem(id=workflow_id, status="deleted")

    async def _execute_one(self, workflow_id: str, input_data: Optional[Dict[str, Any]], timeout: float) -> BatchItem:
        handle = await self.store.execute_workflow(workflow_id, input_data)
        if not handle.execution_id:
            return BatchItem(id=workflow_id, status="triggered", result=handle.data)

        outcome = await wait_for_execution(
            self.store, handle.execution_id, timeout=timeout, interval=self.poll_interval
        )
        payload = outcome.model_dump(exclude_none=True)
        if outcome.status != "success":
            raise BatchItemFailed(
                outcome.error or f"Execution {outcome.status}",
                payload=payload,
                code="timeout" if outcome.status == "timeout" else None,
            )
        return BatchItem(id=workflow_id, status="executed", result=payload)

    async def _activate_one(self, workflow_id: str) -> BatchItem:
        workflow = await self.store.get_workflow(workflow_id)
        ensure_activatable(workflow)
        activated = await self.store.activate_workflow(workflow_id)
        return BatchItem(id=workflow_id, name=activated.name, status="activated")

    async def _deactivate_one(self, workflow_id: str) -> BatchItem:
        deactivated = await self.store.deactivate_workflow(workflow_id)
        return BatchItem(id=workflow_id, name=deactivated.name, status="deactivated")

    async def _clone_one(self, workflow_id: str, name_prefix: Optional[str]) -> BatchItem:
        original = await self.store.get_workflow(workflow_id)
        payload = original.to_payload()
        for key in SERVER_FIELDS:
            payload.pop(key, None)
        payload["name"] = f"{name_prefix}{original.name}" if name_prefix else f"{original.name} (Copy)"
        payload["active"] = False
        created = await self.store.create_workflow(Workflow.model_validate(payload))
        return BatchItem(
            id=created.id, name=created.name, status="cloned", result={"original_id": workflow_id}
        )

    async def _migrate_one(self, workflow_id: str, rules: List[Dict[str, Any]]) -> BatchItem:
        current = await self.store.get_workflow(workflow_id)
        migrated = apply_migrations(current.to_payload(), rules)
        updated = await self.store.update_workflow(workflow_id, Workflow.model_validate(migrated))
        return BatchItem(
            id=workflow_id,
            name=updated.name,
            status="migrated",
            result={"migrations_applied": [migration_label(rule) for rule in rules]},
        )
