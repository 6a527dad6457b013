"""auth/ -- Passcode login, user records, and bearer tokens for the tracker.

Layer rule: auth/ imports only core/, stdlib, and third-party libraries.
It does NOT import from api/ or tracking/.
api/ and tracking/ import from auth/, not the other way around.
"""
