"""
Gigboard - a two-sided gig marketplace API.

Clients post gigs, freelancers bid on them, and a client hires exactly one
freelancer per gig.
"""

try:
    from importlib.metadata import version

    __version__ = version("gigboard")
except Exception:
    __version__ = "0.0.0"

__all__ = ["__version__"]
