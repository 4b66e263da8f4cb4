"""Application composition layer for the dashboard.

Modules in this package wire adapters, use cases and the state store into a
running dashboard session without placing backend logic in the view.
"""
