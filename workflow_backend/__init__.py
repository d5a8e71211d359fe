"""HTTP/WebSocket surface and CLI for the workflow graph engine."""
