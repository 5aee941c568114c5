"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Storage providers (S3-compatible, Google Drive) and the handle
  holding the active one
- The Redis-backed single-use upload token store
- Helpers for object keys and response headers

Keep infrastructure concerns separate from business logic.
"""
