"""forum/ -- News posts and likes shown on the portal front page.

Layer rule: forum/ imports only stdlib and third-party libraries.
It does NOT import from api/, auth/, or mailer/.
"""
