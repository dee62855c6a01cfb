"""
Domain layer for service-request email processing.

This layer contains:
- Data models and the validated ticket schema
- Error types
- Business logic (email processing pipeline)
"""
