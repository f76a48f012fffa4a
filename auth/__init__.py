"""auth/ -- Authentication core for Session Auth.

Credential hashing, token issuing/verification, the authentication service
and the request gates. The only FastAPI-aware module is dependencies.py.

Layer rule: auth/ imports only stdlib + third-party libraries (and core/ for
configuration types). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
