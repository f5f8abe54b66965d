"""
app-inventory - one sorted report of everything installed on a machine.

Collect from every package source, normalize, compare over time.
"""

from importlib.metadata import version as _version

__version__ = _version("app-inventory")
