"""
tracker-proxy service package.
"""
