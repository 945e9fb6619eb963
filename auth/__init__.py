"""auth/ -- Authentication and authorization package for the JWT Pizza service.

Layer rule: auth/ imports stdlib, third-party libraries, and core/ only.
It does NOT import from api/, franchise/, or orders/.
api/ imports from auth/, not the other way around. The one exception is
auth/dependencies.py, which imports fastapi to plug the guard into Depends().
"""
