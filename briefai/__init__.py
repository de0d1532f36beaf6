"""briefai: SEO content briefs from competitor SERP data and an LLM.

Expands a topic into related queries, runs them in rate-limited batches
behind a circuit breaker, aggregates the competitor results and asks a
language model for a structured content brief.
"""

__version__ = "1.0.0"
