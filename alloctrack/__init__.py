"""alloctrack - resource allocation tracker.

Users claim portions of finite, named resources; the accounting core
guarantees the claims on a resource never exceed its total capacity.
"""

__version__ = "0.1.0"
