"""Audit logging package."""

from pennywise.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
