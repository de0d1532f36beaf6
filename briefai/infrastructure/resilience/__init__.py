"""API Resilience Implementations.

Retry with exponential backoff, keyed circuit breakers, batch scheduling
and a sliding-window rate limiter for outgoing API calls.
Bounded Context: API Resilience
"""
