"""
Application Layer for set-sync.

This package contains:
- ports/: Abstract interfaces (operation store, remote writer, session fetch)
- use_cases/: Workflows coordinating ports and the set queue
"""
