"""
MCP tool for creating, applying and generating workflow templates.
"""

from typing import Any, Dict

from loguru import logger

from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.template import WorkflowTemplate
from flowgraph.schemas.tools import TemplateParams
from flowgraph.schemas.workflow import Workflow
from flowgraph.services.template_engine import TemplateEngine
from flowgraph.services.workflow_patterns import WORKFLOW_PATTERNS, get_pattern
from flowgraph.utils.exceptions import ValidationError


class TemplateTool(WorkflowTool):
    name = "template"
    description = "Turn workflows into reusable templates, instantiate templates and analyze workflow patterns"
    params_model = TemplateParams

    def __init__(self, store=None, discovery=None):
        super().__init__(store=store, discovery=discovery)
        self.engine = TemplateEngine()

    async def execute(self, params: TemplateParams) -> Dict[str, Any]:
        logger.info(f"MCP template: action={params.action}")
        if params.action == "create":
            workflow = await self.load_workflow(params.workflow)
            template = self.engine.extract(
                workflow,
                name=params.name,
                description=params.description,
                include_credentials=params.include_credentials,
                generate_variables=params.generate_variables,
            )
            return {
                "template": template.model_dump(mode="json"),
                "summary": {
                    "node_count": len(template.workflow.get("nodes", [])),
                    "variable_count": len(template.variables),
                    "complexity": template.metadata.complexity,
                },
            }

        if params.action == "list":
            return {
                "templates": [
                    {k: p[k] for k in ("id", "name", "category", "description", "tags")} for p in WORKFLOW_PATTERNS
                ],
                "categories": sorted({p["category"] for p in WORKFLOW_PATTERNS}),
                "total": len(WORKFLOW_PATTERNS),
            }

        if params.action == "analyze":
            workflows = [
                await self.store.get_workflow(summary.id) if summary.id else summary
                for summary in await self.store.list_workflows()
            ]
            return self.engine.analyze_patterns(workflows)

        if params.action == "generate":
            pattern = get_pattern(params.pattern)
            template = WorkflowTemplate.model_validate(pattern)
        else:
            try:
                template = WorkflowTemplate.model_validate(params.template)
            except ValueError as e:
                raise ValidationError(f"Invalid template: {e}", field="template")

        return await self._instantiate(template, params)

    async def _instantiate(self, template: WorkflowTemplate, params: TemplateParams) -> Dict[str, Any]:
        missing = self.engine.missing_variables(template, params.variables)
        payload = self.engine.apply(template, params.variables, params.credentials)
        if params.name:
            payload["name"] = params.name
        workflow = Workflow.model_validate(payload)

        catalog = self.discovery.cached_catalog
        result: Dict[str, Any] = {
            "workflow": workflow.to_payload(),
            "missing_variables": missing,
            "unknown_node_types": self.engine.unknown_node_types(template, catalog),
        }
        if params.save:
            if missing:
                raise ValidationError(f"Missing values for: {', '.join(missing)}", field="variables")
            created = await self.store.create_workflow(workflow)
            result["created"] = {"id": created.id, "name": created.name}
        return result
