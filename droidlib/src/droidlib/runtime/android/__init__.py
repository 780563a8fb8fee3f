"""Android runtime helpers.

This package contains *thin* wrappers around adb/emulator operations. Every
command is echoed before it runs and a non-zero exit code aborts the caller.
"""
