"""Domain Interfaces (Ports):

Abstract Base Classes that infrastructure components implement. Core
services depend on these contracts, not on concrete adapters.
"""
