"""
Built-in workflow pattern templates.

Each pattern is a template definition with ``{{variable}}`` placeholders and
variable defaults, in the same shape the template engine produces.
"""

from typing import Any, Dict, List


def _connect(*names: str) -> Dict[str, Any]:
    return {
        source: {"main": [[{"node": target, "type": "main", "index": 0}]]}
        for source, target in zip(names, names[1:])
    }


def _variable(description: str, default: Any = "", required: bool = True) -> Dict[str, Any]:
    return {"description": description, "default_value": default, "type": "string", "required": required}


WORKFLOW_PATTERNS: List[Dict[str, Any]] = [
    {
        "id": "webhook_api",
        "name": "Webhook to API",
        "category": "integration",
        "description": "Receive webhook data and forward it to an external API",
        "tags": ["webhook", "api"],
        "workflow": {
            "name": "{{workflow_name}}",
            "nodes": [
                {
                    "name": "Webhook",
                    "type": "n8n-nodes-base.webhook",
                    "typeVersion": 1,
                    "position": [250, 300],
                    "parameters": {"httpMethod": "POST", "path": "{{webhook_path}}", "responseMode": "responseNode"},
                },
                {
                    "name": "Send to API",
                    "type": "n8n-nodes-base.httpRequest",
                    "typeVersion": 4,
                    "position": [450, 300],
                    "parameters": {
                        "url": "{{api_endpoint}}",
                        "method": "POST",
                        "sendBody": True,
                        "specifyBody": "json",
                        "jsonBody": "={{ JSON.stringify($json) }}",
                    },
                },
                {
                    "name": "Respond",
                    "type": "n8n-nodes-base.respondToWebhook",
                    "typeVersion": 1,
                    "position": [650, 300],
                    "parameters": {"respondWith": "json", "responseBody": '{"status": "ok"}'},
                },
            ],
            "connections": _connect("Webhook", "Send to API", "Respond"),
        },
        "variables": {
            "workflow_name": _variable("Name of the created workflow", "Webhook to API"),
            "webhook_path": _variable("Webhook endpoint path", "incoming"),
            "api_endpoint": _variable("Target API endpoint URL", "https://api.example.com/data"),
        },
    },
    {
        "id": "scheduled_task",
        "name": "Scheduled Task",
        "category": "automation",
        "description": "Fetch data from an API on a schedule",
        "tags": ["scheduled", "api"],
        "workflow": {
            "name": "{{workflow_name}}",
            "nodes": [
                {
                    "name": "Schedule",
                    "type": "n8n-nodes-base.scheduleTrigger",
                    "typeVersion": 1,
                    "position": [250, 300],
                    "parameters": {"rule": {"interval": [{"field": "cronExpression", "expression": "{{cron_schedule}}"}]}},
                },
                {
                    "name": "Fetch Data",
                    "type": "n8n-nodes-base.httpRequest",
                    "typeVersion": 4,
                    "position": [450, 300],
                    "parameters": {"url": "{{data_source_url}}", "method": "GET"},
                },
                {
                    "name": "Stamp Results",
                    "type": "n8n-nodes-base.set",
                    "typeVersion": 3,
                    "position": [650, 300],
                    "parameters": {
                        "values": {"string": [{"name": "fetchedAt", "value": "={{ $now.toISO() }}"}]}
                    },
                },
            ],
            "connections": _connect("Schedule", "Fetch Data", "Stamp Results"),
        },
        "variables": {
            "workflow_name": _variable("Name of the created workflow", "Scheduled Task"),
            "cron_schedule": _variable("Cron expression", "0 * * * *"),
            "data_source_url": _variable("URL to fetch on every run", "https://api.example.com/items"),
        },
    },
    {
        "id": "data_transformation",
        "name": "Data Transformation",
        "category": "data",
        "description": "Filter and reshape incoming items",
        "tags": ["transform"],
        "workflow": {
            "name": "{{workflow_name}}",
            "nodes": [
                {
                    "name": "Manual Trigger",
                    "type": "n8n-nodes-base.manualTrigger",
                    "typeVersion": 1,
                    "position": [250, 300],
                    "parameters": {},
                },
                {
                    "name": "Filter",
                    "type": "n8n-nodes-base.filter",
                    "typeVersion": 1,
                    "position": [450, 300],
                    "parameters": {
                        "conditions": {"string": [{"value1": "{{filter_field}}", "operation": "isNotEmpty"}]}
                    },
                },
                {
                    "name": "Transform",
                    "type": "n8n-nodes-base.code",
                    "typeVersion": 2,
                    "position": [650, 300],
                    "parameters": {"jsCode": "{{transform_code}}"},
                },
            ],
            "connections": _connect("Manual Trigger", "Filter", "Transform"),
        },
        "variables": {
            "workflow_name": _variable("Name of the created workflow", "Data Transformation"),
            "filter_field": _variable("Expression that must be non-empty on each item", "={{ $json.id }}"),
            "transform_code": _variable("JavaScript run for each batch", "return $input.all();"),
        },
    },
    {
        "id": "notification_system",
        "name": "Notification System",
        "category": "communication",
        "description": "Send an email and a Slack message when triggered by a webhook",
        "tags": ["webhook", "email", "notification"],
        "workflow": {
            "name": "{{workflow_name}}",
            "nodes": [
                {
                    "name": "Webhook",
                    "type": "n8n-nodes-base.webhook",
                    "typeVersion": 1,
                    "position": [250, 300],
                    "parameters": {"httpMethod": "POST", "path": "{{webhook_path}}"},
                },
                {
                    "name": "Send Email",
                    "type": "n8n-nodes-base.emailSend",
                    "typeVersion": 2,
                    "position": [450, 200],
                    "parameters": {"toEmail": "{{notify_email}}", "subject": "{{email_subject}}", "text": "={{ $json.message }}"},
                },
                {
                    "name": "Post to Slack",
                    "type": "n8n-nodes-base.slack",
                    "typeVersion": 2,
                    "position": [450, 400],
                    "parameters": {"channel": "{{slack_channel}}", "text": "={{ $json.message }}"},
                },
            ],
            "connections": {
                "Webhook": {
                    "main": [[
                        {"node": "Send Email", "type": "main", "index": 0},
                        {"node": "Post to Slack", "type": "main", "index": 0},
                    ]]
                }
            },
        },
        "variables": {
            "workflow_name": _variable("Name of the created workflow", "Notification System"),
            "webhook_path": _variable("Webhook endpoint path", "notify"),
            "notify_email": _variable("Recipient address", "ops@example.com"),
            "email_subject": _variable("Email subject line", "Workflow notification"),
            "slack_channel": _variable("Slack channel", "#alerts"),
        },
    },
]


def get_pattern(pattern_id: str) -> Dict[str, Any]:
    for pattern in WORKFLOW_PATTERNS:
        if pattern["id"] == pattern_id:
            return pattern
    raise KeyError(pattern_id)
