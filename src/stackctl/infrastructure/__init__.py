"""Infrastructure layer — file rendering, artifacts, docker compose, network probes.

This layer depends on stdlib and third-party libs (Jinja2, ruamel.yaml,
cryptography, httpx). It may import from domain, never from services,
commands, or output.
"""
