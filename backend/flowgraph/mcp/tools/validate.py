"""
MCP tool for validating workflows, parameters, credentials and execution readiness.
"""

from typing import Any, Dict

from loguru import logger

from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.tools import ValidateParams
from flowgraph.services.workflow_validator import WorkflowValidator


class ValidateTool(WorkflowTool):
    name = "validate"
    description = "Validate workflow structure, node parameters, credentials or execution readiness"
    params_model = ValidateParams

    async def execute(self, params: ValidateParams) -> Dict[str, Any]:
        logger.info(f"MCP validate: type={params.type}, workflow={params.workflow}")

        if params.type in ("workflow", "parameters"):
            catalog = await self.discovery.discover(force_refresh=params.force_refresh_catalog)
            validator = WorkflowValidator(catalog=catalog)
        else:
            validator = WorkflowValidator()

        if params.type == "parameters":
            return validator.validate_parameters(params.node_type, params.parameters, params.type_version).model_dump()

        workflow = await self.load_workflow(params.workflow)
        if params.type == "credentials":
            return validator.validate_credentials(workflow).model_dump()
        if params.type == "readiness":
            return validator.validate_readiness(workflow).model_dump()

        execution = None
        if params.execution_id:
            execution = await self.store.get_execution(params.execution_id)
        report = validator.validate(workflow, execution=execution, deep=params.deep)
        return report.model_dump(mode="json")
