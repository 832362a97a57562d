"""core/ -- Configuration and error kinds shared by every layer.

Layer rule: core/ imports only stdlib + third-party libraries.
"""
