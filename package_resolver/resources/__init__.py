"""
Feeds backing a repository: local archive directories and remote v3 services.
"""
