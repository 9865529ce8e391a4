"""
Web interface for property search.
"""
