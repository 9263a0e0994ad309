"""
Message templates shared by the request log sink and the error paths.

Templates use printf-style placeholders so that debug traces are only
formatted when the logger is enabled for that level.
"""

DEBUG_CALL_METHOD = "Calling '%s::%s'"
DEBUG_CALL_METHOD3 = "Calling '%s::%s' '%s'"
DEBUG_RETURN_CALL = "Done calling '%s::%s'"
ENDPOINT_DISCOVERED = "Discovered endpoint '%s' at '%s'"
RETRYING_DOWNLOAD = "Retrying download of '%s', attempt %s"
SKIPPING_SOURCE = "Skipping source '%s': %s"
UNREADABLE_PACKAGE = "Unable to read package file '%s': %s"

# Formatted with str.format because they end up in exception messages.
INVALID_QUERY_URL = "The specified source '{0}' is not a valid package source location."
ENDPOINT_DISCOVERY_FAILED = "Unable to discover the package resources at '{0}'."
SOURCE_NOT_FOUND = "The local package source '{0}' does not exist."
