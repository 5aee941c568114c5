"""Business logic layer for files app.

This package contains all business logic of the upload broker:
- Upload token issuance
- The upload workflow (token, validation, quota, provider, metadata)
- Download, metadata update and delete of stored files
- Quota accounting and the expiry sweep of temporary files
- Policy snapshot and provider reconfiguration

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
