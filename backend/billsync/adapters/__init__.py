"""Infrastructure adapters.

Adapters implement protocols defined in core/protocols/.
Each adapter wraps external infrastructure (Prometheus, etc.).
"""
