"""
HTTP API routers for VirtuLab.
"""
