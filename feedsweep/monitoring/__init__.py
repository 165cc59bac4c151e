"""
Operation Monitoring Module
===========================

Provides the in-memory operation log used for live observability of fetch
and error events.
"""

from .operation_log import OperationLog

__all__ = ['OperationLog']
