"""auth/ -- Password login, reset/magic-auth tokens and first-item setup for listauth.

Entry point: auth.factory.create_auth().

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
