"""
Command-line interface for blobmirror.
"""
