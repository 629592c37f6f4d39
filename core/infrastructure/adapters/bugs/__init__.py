"""Bug registry adapters.

Import concrete registries directly from their modules; the HTTP one pulls
in aiohttp.
"""

__all__ = []
