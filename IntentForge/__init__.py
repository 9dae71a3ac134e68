"""
IntentForge: exported Android component discovery and adb intent synthesis.

This system finds the externally reachable components of an Android project,
recovers the intent parameters their code reads, and produces one ready-to-run
`adb shell am` command per component for security assessment.
"""

__version__ = "1.0.0"
__author__ = "IntentForge Team"
