"""mailer/ -- Outgoing e-mail for the game portal (password reset links).

Layer rule: mailer/ imports only stdlib, third-party libraries, and core/.
"""
