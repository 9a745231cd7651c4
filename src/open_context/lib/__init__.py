"""Core library: configuration and the sandboxed filesystem layer.

Primary namespaces:
- ``open_context.lib.config`` for startup configuration.
- ``open_context.lib.filesystem`` for path validation, edits and search.
"""
