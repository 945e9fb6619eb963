"""franchise/ -- Franchise and store hierarchy for JWT Pizza.

Layer rule: franchise/ may import from auth/ (it writes franchisee grants into
the user_roles table) and core/. It does NOT import from api/ or orders/.
"""
