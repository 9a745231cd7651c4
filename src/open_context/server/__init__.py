"""Tool-dispatch surfaces built on the open_context library."""
