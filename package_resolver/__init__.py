"""
Package resolver: find, search, download and install packages from local
directories and remote v3 feeds behind one repository interface.
"""
