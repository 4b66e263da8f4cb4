"""ViewModel package for client settings and display formatting.

Call context:
    ``msmgr/app`` modules import the settings viewmodel to build adapters and
    the formatting helpers to narrate events.

Dependencies:
    Modules in this package depend on domain types only. I/O adapters and
    use-case orchestration remain outside.
"""
