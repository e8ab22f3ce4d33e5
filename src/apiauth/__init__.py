"""
apiauth: HMAC request signing and verification for REST services.

A client signs each request over its method, content type, body MD5, path
and timestamp; the service recomputes the signature against its shared
secrets before dispatching.
"""

__version__ = "1.0.0"
