"""Ingestion layer.

This package contains the inbound pipeline that turns webhook deliveries
from the field-service platform into job state transitions.
"""

__all__: list[str] = []
