"""Infrastructure layer for uploads app.

This package contains integrations with external systems:
- Storage backends (local filesystem, S3/MinIO/R2)
- Image codec operations (Pillow)
- SVG parsing and sanitization
- Content fingerprinting

Keep infrastructure concerns separate from business logic.
"""
