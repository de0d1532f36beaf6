"""Caching Service Implementation.

Bounded in-memory TTL cache for SERP payloads and generated briefs.
Bounded Context: Cache Management
"""
