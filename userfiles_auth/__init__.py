"""
User-files authentication for a remote-desktop gateway.

Loads per-user / per-session XML connection files from the gateway home
directory and exposes the profiles they authorize.
"""
__version__ = "1.0.0"
