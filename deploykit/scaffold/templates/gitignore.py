""".gitignore entries for credentials and build output; merged line by line."""
from __future__ import annotations

ENTRIES: tuple[str, ...] = (
    "# CI/CD sensitive files",
    "android/app/*.keystore",
    "android/key.properties",
    "android/fastlane/play_store_service_account.json",
    "ios/fastlane/AuthKey_*.p8",
    "*.mobileprovision",
    "*.p12",
    "*.deploykit-backup",
    ".env",
    "",
    "# Build artifacts",
    "builder/",
    "build/",
    "",
    "# Fastlane",
    "ios/fastlane/report.xml",
    "android/fastlane/report.xml",
    "ios/fastlane/README.md",
    "android/fastlane/README.md",
)

TEMPLATE = "\n".join(ENTRIES) + "\n"

PLACEHOLDERS: frozenset[str] = frozenset()
