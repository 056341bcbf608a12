"""project.config template: flat KEY="VALUE" lines, readable by dotenv and by sh."""
from __future__ import annotations

TEMPLATE = '''\
# Flutter CI/CD Project Configuration
# Auto-generated for project: {{PROJECT_NAME}} on {{GENERATION_DATE}}

PROJECT_NAME="{{PROJECT_NAME}}"
PACKAGE_NAME="{{PACKAGE_NAME}}"
BUNDLE_ID="{{BUNDLE_ID}}"
APP_NAME="{{APP_NAME}}"
CURRENT_VERSION="{{VERSION_FULL}}"
DEPLOYMENT_MODE="{{DEPLOYMENT_MODE}}"

# Build Configuration
BUILD_MODE="release"
FLUTTER_VERSION="{{FLUTTER_VERSION}}"
FLUTTER_BUILD_ARGS="--release --no-tree-shake-icons"
OUTPUT_DIR="builder"
CHANGELOG_FILE="builder/changelog.txt"

# iOS Configuration
IOS_SCHEME="Runner"
IOS_WORKSPACE="ios/Runner.xcworkspace"
IOS_EXPORT_METHOD="app-store"
TEAM_ID="{{TEAM_ID}}"
KEY_ID="{{KEY_ID}}"
ISSUER_ID="{{ISSUER_ID}}"
APPLE_ID="{{APPLE_ID}}"
TESTFLIGHT_GROUPS="Internal Testers"

# Android Configuration
ANDROID_BUILD_TYPE="appbundle"
GOOGLE_PLAY_TRACK="internal"

# Version Configuration
VERSION_STRATEGY="auto"
CHANGELOG_ENABLED="true"
'''

PLACEHOLDERS = frozenset({
    "PROJECT_NAME",
    "GENERATION_DATE",
    "PACKAGE_NAME",
    "BUNDLE_ID",
    "APP_NAME",
    "VERSION_FULL",
    "DEPLOYMENT_MODE",
    "FLUTTER_VERSION",
    "TEAM_ID",
    "KEY_ID",
    "ISSUER_ID",
    "APPLE_ID",
})
