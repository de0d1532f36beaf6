"""Infrastructure Layer: Concrete implementations and adapters.

Connects the application to the outside world (LLM and SERP APIs, the
console, configuration files) and hosts the cache and resilience services.
"""
