"""
Business logic behind the HTTP routes.

``permissions`` decides what a user may do in a project; the
``merge_requests`` package holds the merge request services.
"""
