"""
certsync — Synchronize Kubernetes TLS secrets to external certificate stores.
"""

__version__ = "0.1.0"
