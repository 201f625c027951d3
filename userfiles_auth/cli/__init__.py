"""
Command line tools for userfiles-auth.
"""
