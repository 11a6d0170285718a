"""
Slotwise algorithms package.

Pure scheduling logic with no dependency on Django models. The subpackages are:
- availability: Interval algebra, conflict detection, DST-safe slot resolution
"""

__version__ = "1.0.0"
