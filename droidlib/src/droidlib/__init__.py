"""droidlib: install runtime libraries onto Android emulators and rooted devices.

The installer:
- discovers AVDs (``android list avd``) and payload versions on disk
- validates the requested device/version against what was discovered
- pushes libraries and permission descriptors through adb, in a fixed order
- prints the ``<uses-library>`` lines the app manifest needs
"""

__all__ = [
    "catalog",
    "cli",
    "config",
    "errors",
    "install",
    "runtime",
    "validation",
]
