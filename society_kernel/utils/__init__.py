"""Utility functions for the society kernel."""

from society_kernel.utils.hashing import canonicalize_json, hash_audit_entry, hash_payload

__all__ = ["canonicalize_json", "hash_audit_entry", "hash_payload"]
