"""Domain Event definitions.

Significant occurrences during a fan-out run (retries, breaker state
changes, fallbacks, finished batches) that other parts may observe.
"""
