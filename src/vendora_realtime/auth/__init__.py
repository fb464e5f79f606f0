"""Connection admission.

Learn: This service never issues or stores credentials. Two admission paths:
1. Bearer token → validated by the Laravel API (/auth/me) → user identity
2. No token + guest=true → synthetic guest identity (public events only)

Both resolve to an Identity that the subscription registry uses to pick
the connection's rooms.
"""
