"""
Initialization Module.

- logging: Logger configuration
- services: Service wiring from settings
"""

__all__ = []
