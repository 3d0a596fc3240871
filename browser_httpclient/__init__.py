"""
browser-httpclient: HTTP-client-shaped answers from real browser navigations.
"""

__version__ = "0.3.0"
