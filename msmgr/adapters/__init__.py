"""Adapter package for external I/O implementations.

Purpose:
    Collect concrete implementations for domain ports (backend commands over
    HTTP, server-sent event streams, folder picking, config files, and an
    offline backend) used by use cases and the reconciler.

Dependencies:
    Individual submodules depend on ``requests``, ``httpx``, ``tkinter``,
    filesystem APIs, and domain protocol definitions.

Call context:
    Imported by app composition modules (for runtime wiring) and by tests (for
    the offline backend and transport-level behavior verification).
"""
