"""auth/ -- Credential store, password hashing, lockout, and sessions.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, or users/.
api/, web/ and users/ import from auth/, not the other way around.
"""
