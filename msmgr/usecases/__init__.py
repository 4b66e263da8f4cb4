"""Use-case layer wrapping every backend command the dashboard issues.

Each module coordinates domain snapshots and ports without performing
transport I/O directly, and reports failures as ``UseCaseError``.
"""
