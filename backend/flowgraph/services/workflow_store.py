"""
Workflow store: the n8n REST API behind a small async interface.

Components depend on the ``WorkflowStore`` protocol; ``N8nWorkflowStore`` is the
httpx implementation. Retries and rate limiting are left to the transport.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx
from loguru import logger

from flowgraph.core.config import settings
from flowgraph.schemas.workflow import Execution, ExecutionHandle, Workflow
from flowgraph.utils.exceptions import NotFoundError, WorkflowStoreError


class WorkflowStore(Protocol):
    async def list_workflows(self) -> List[Workflow]: ...

    async def get_workflow(self, workflow_id: str) -> Workflow: ...

    async def create_workflow(self, workflow: Workflow) -> Workflow: ...

    async def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow: ...

    async def delete_workflow(self, workflow_id: str) -> None: ...

    async def activate_workflow(self, workflow_id: str) -> Workflow: ...

    async def deactivate_workflow(self, workflow_id: str) -> Workflow: ...

    async def execute_workflow(self, workflow_id: str, data: Optional[Dict[str, Any]] = None) -> ExecutionHandle: ...

    async def get_execution(self, execution_id: str) -> Execution: ...

    async def list_executions(self, workflow_id: Optional[str] = None, limit: int = 20) -> List[Execution]: ...


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload and set(payload.keys()) <= {"data", "nextCursor"}:
        return payload["data"]
    return payload


class N8nWorkflowStore:
    """Async client for the n8n public API (``/api/v1``)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        page_size: int = 100,
    ):
        self.base_url = (base_url or settings.N8N_BASE_URL).rstrip("/")
        self.api_url = f"{self.base_url}/api/v1"
        self.api_key = api_key if api_key is not None else settings.N8N_API_KEY
        self.timeout_s = timeout_s or settings.N8N_API_TIMEOUT_SECONDS
        self.page_size = page_size
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_s,
                headers={"X-N8N-API-KEY": self.api_key, "Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        resource: str = "Resource",
        identifier: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        url = f"{self.api_url}{path}"
        client = self._get_client()
        logger.debug(f"n8n {method} {path}")
        try:
            response = await client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"X-N8N-API-KEY": self.api_key},
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            raise WorkflowStoreError(f"Request timed out after {self.timeout_s}s", endpoint=path)
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404:
                raise NotFoundError(resource, identifier or path, detail=e.response.text[:500])
            raise WorkflowStoreError(
                f"{method} {path} failed: {e.response.text[:500]}",
                status_code=status_code,
                endpoint=path,
            )
        except httpx.HTTPError as e:
            raise WorkflowStoreError(f"Request failed: {str(e)}", endpoint=path)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise WorkflowStoreError(f"Invalid JSON from {path}", status_code=response.status_code, endpoint=path)

    async def _paginate(self, path: str, params: Dict[str, Any], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            page_params = dict(params)
            page_params["limit"] = min(self.page_size, limit - len(items)) if limit else self.page_size
            if cursor:
                page_params["cursor"] = cursor
            payload = await self._request("GET", path, params=page_params)
            if isinstance(payload, list):
                items.extend(payload)
                break
            items.extend((payload or {}).get("data") or [])
            cursor = (payload or {}).get("nextCursor")
            if not cursor or (limit and len(items) >= limit):
                break
        return items[:limit] if limit else items

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def list_workflows(self) -> List[Workflow]:
        raw = await self._paginate("/workflows", {})
        workflows = []
        for item in raw:
            try:
                workflows.append(Workflow.model_validate(item))
            except ValueError as e:
                logger.warning(f"Skipping unparseable workflow {item.get('id')}: {e}")
        return workflows

    async def get_workflow(self, workflow_id: str) -> Workflow:
        payload = await self._request("GET", f"/workflows/{workflow_id}", resource="Workflow", identifier=workflow_id)
        return Workflow.model_validate(_unwrap(payload))

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        payload = await self._request("POST", "/workflows", json=workflow.writable_payload())
        return Workflow.model_validate(_unwrap(payload))

    async def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow:
        payload = await self._request(
            "PUT",
            f"/workflows/{workflow_id}",
            resource="Workflow",
            identifier=workflow_id,
            json=workflow.writable_payload(),
        )
        return Workflow.model_validate(_unwrap(payload))

    async def delete_workflow(self, workflow_id: str) -> None:
        await self._request("DELETE", f"/workflows/{workflow_id}", resource="Workflow", identifier=workflow_id)

    async def activate_workflow(self, workflow_id: str) -> Workflow:
        payload = await self._request(
            "POST", f"/workflows/{workflow_id}/activate", resource="Workflow", identifier=workflow_id
        )
        return Workflow.model_validate(_unwrap(payload))

    async def deactivate_workflow(self, workflow_id: str) -> Workflow:
        payload = await self._request(
            "POST", f"/workflows/{workflow_id}/deactivate", resource="Workflow", identifier=workflow_id
        )
        return Workflow.model_validate(_unwrap(payload))

    # ------------------------------------------------------------------
    # Executions
    # ------------------------------------------------------------------

    async def execute_workflow(self, workflow_id: str, data: Optional[Dict[str, Any]] = None) -> ExecutionHandle:
        payload = await self._request(
            "POST",
            f"/workflows/{workflow_id}/execute",
            resource="Workflow",
            identifier=workflow_id,
            json=data or {},
        )
        body = _unwrap(payload) or {}
        execution_id = body.get("executionId") or body.get("id")
        return ExecutionHandle(execution_id=execution_id, data=body)

    async def get_execution(self, execution_id: str) -> Execution:
        payload = await self._request(
            "GET",
            f"/executions/{execution_id}",
            resource="Execution",
            identifier=execution_id,
            params={"includeData": "true"},
        )
        return Execution.model_validate(_unwrap(payload))

    async def list_executions(self, workflow_id: Optional[str] = None, limit: int = 20) -> List[Execution]:
        params: Dict[str, Any] = {}
        if workflow_id:
            params["workflowId"] = workflow_id
        raw = await self._paginate("/executions", params, limit=limit)
        return [Execution.model_validate(item) for item in raw]


async def resolve_workflow(store: WorkflowStore, identifier: str) -> Workflow:
    """Fetch a workflow by id, falling back to an exact name match."""
    if not identifier:
        raise NotFoundError("Workflow", "<empty>")
    try:
        return await store.get_workflow(identifier)
    except NotFoundError:
        pass
    except WorkflowStoreError as e:
        # n8n answers 400 for ids that are not valid workflow ids
        if e.status_code != 400:
            raise
    for summary in await store.list_workflows():
        if summary.name == identifier:
            return await store.get_workflow(summary.id) if summary.id else summary
    raise NotFoundError("Workflow", identifier)


_default_store: Optional[N8nWorkflowStore] = None


def get_workflow_store() -> N8nWorkflowStore:
    global _default_store
    if _default_store is None:
        _default_store = N8nWorkflowStore()
    return _default_store


async def close_workflow_store() -> None:
    global _default_store
    if _default_store is not None:
        await _default_store.aclose()
        _default_store = None
