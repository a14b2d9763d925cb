"""auth/ -- Identity, session, and authorization package for LogicGrid.

Layer rule: auth/ imports stdlib, third-party libraries, and core/ only.
It does NOT import from api/, protocols/, or suggest/.
api/ imports from auth/, not the other way around.
"""
