from .audit import AuditTrail, JsonlAuditSink, MemoryAuditSink, build_audit_sink

__all__ = ["AuditTrail", "JsonlAuditSink", "MemoryAuditSink", "build_audit_sink"]
