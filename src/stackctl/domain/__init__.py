"""Domain layer — topology model, trust-boundary rules, forwarding contract.

This layer depends only on stdlib, pydantic, and networkx.
It must never import from services, infrastructure, commands, or config.
"""
