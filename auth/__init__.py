"""auth/ -- Bearer-token authentication for BookOrbit.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, users/, catalog/, or orders/.
api/ imports from auth/, not the other way around.
"""
