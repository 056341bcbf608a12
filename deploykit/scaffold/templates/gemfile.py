"""Gemfile template pinning fastlane and cocoapods."""
from __future__ import annotations

FASTLANE_VERSION = "~> 2.228"
COCOAPODS_VERSION = "~> 1.11"

TEMPLATE = f'''\
# Gemfile for {{{{PROJECT_NAME}}}} ({{{{PACKAGE_NAME}}}})
# Generated by deploykit on {{{{GENERATION_DATE}}}}
source "https://rubygems.org"

gem "fastlane", "{FASTLANE_VERSION}"
gem "cocoapods", "{COCOAPODS_VERSION}"

plugins_path = File.join(File.dirname(__FILE__), "fastlane", "Pluginfile")
eval_gemfile(plugins_path) if File.exist?(plugins_path)
'''

PLACEHOLDERS = frozenset({"PROJECT_NAME", "PACKAGE_NAME", "GENERATION_DATE"})
