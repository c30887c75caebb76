"""Falcon ASGI surface for health probes and delivery history."""
