"""
apkforge: Android application build pipeline.

Resolves and unpacks library dependencies, drives the Android SDK tools
(aapt/aapt2, aidl, dx/d8, proguard, ndk-build) in phase order, and assembles
the final APK with duplicate-file conflict resolution.
"""

__version__ = "1.0.0"
__author__ = "apkforge Team"
