"""
Photo Manager: photo asset management with subscription quotas, pluggable
storage, processing pipelines, search, undo and an audit log.
"""

__version__ = "1.0.0"
