"""orders/ -- Menu, diner orders, and the order factory client.

Layer rule: orders/ imports from core/ only. api/ wires it to auth/ and
franchise/.
"""
