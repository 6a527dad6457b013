"""tracking/ -- Location history, viewer permissions, and the request gateway.

Layer rule: tracking/ may import from auth/ and core/.
It does NOT import from api/.
"""
