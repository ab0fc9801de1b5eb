"""Hive MCP: isolated git worktrees and durable feature/task state for agents."""

__all__ = ["__version__"]

__version__ = "0.1.0"
