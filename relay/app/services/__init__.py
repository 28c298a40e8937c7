"""Services package for the relay.

This package provides:
- Token bucket rate limiting with a local cache and durable store
- The resilient translation query orchestrator
"""
