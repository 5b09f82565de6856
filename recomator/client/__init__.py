"""
Backend access.

Modules
-------
resilient_fetch : AuthState + ResilientFetch — bearer injection, transport
                  retry with exponential backoff, sign-in redirect on 401/403.
auth            : exchange_auth_code() — one-time OAuth code → bearer token.
"""
