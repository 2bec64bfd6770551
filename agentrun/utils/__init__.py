# agentrun/utils/__init__.py
"""
Cross-cutting helpers for agentrun: logging, configuration loading, log
redaction, timing and resource-string parsing.
"""
