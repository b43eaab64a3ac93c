"""auth/ -- Authentication and credential-lifecycle core for Chirpy.

Components (leaves first):
  passwords.py     Argon2id password hashing and verification.
  tokens.py        HS256 access tokens (issue / validate).
  refresh.py       Opaque refresh tokens (mint / persist / revoke).
  headers.py       Authorization header parsing.
  policy.py        AuthPolicy -- composes the above into allow/deny decisions.

Supporting modules: errors.py (taxonomy), models.py (records), store.py
(SQLAlchemy persistence), dependencies.py (FastAPI adapter).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
The request-handling layer imports from auth/, not the other way around.
"""
