"""stackhealth — health reporter for a multi-container MCP client deployment."""

__version__ = "0.1.0"
