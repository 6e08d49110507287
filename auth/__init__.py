"""auth/ -- Accounts, credentials, and session tokens for the game portal.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, forum/, or mailer/.
api/ imports from auth/, not the other way around.
"""
