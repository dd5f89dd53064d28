"""Test package marker for the mailquery suites.

What:
  Marks ``tests`` as a package so pytest imports the CLI tests and the shared
  ``conftest`` under unique module names.

Invariants & Safety:
  - The file must remain side-effect free so that importing ``tests`` never
    mutates environment state or test fixtures.
"""
