"""open_context: sandboxed filesystem tools served over MCP."""

__version__ = "0.1.0"
