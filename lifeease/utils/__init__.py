"""
UTILITIES PACKAGE
=================

Helpers used by the services (no HTTP, no state):

  formatting - format_bytes(), normalize_reply() (role-marker rule), upload_acknowledgement().
"""
