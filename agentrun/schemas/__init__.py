# agentrun/schemas/__init__.py
"""
The `schemas` package defines the Pydantic models that flow between the
scheduler, policy engine, tool layer, sandbox manager and transport.

Keeping them in one place means the event stream, the persisted records and
the tool contract all agree on field names and serialization.
"""
