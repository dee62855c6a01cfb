"""
Service functions used by the email pipeline.

This package contains email parsing, S3 access, archival, retry,
phone number validation and SMS message formatting.
"""

__all__ = ['archive', 'email', 'formatter', 'phone', 'retry', 's3']
