"""
FlowGraph: workflow-graph tooling for n8n automation servers.
"""

__version__ = "0.1.0"
