"""Core Application Layer: Orchestrates use cases and application logic.

Contains the fan-out and brief services and the command handler. Talks to
infrastructure only through the domain interfaces.
"""
