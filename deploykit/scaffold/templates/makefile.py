"""Makefile template for a Flutter project.

Recipes start with a literal tab; the live target's recipe is injected via
{{LIVE_DEPLOY_RECIPE}} so it can differ per deployment mode.
"""
from __future__ import annotations

TEMPLATE = (
    "# Makefile for {{APP_NAME}} ({{PROJECT_NAME}})\n"
    "# Generated by deploykit on {{GENERATION_DATE}}\n"
    "# Deployment mode: {{DEPLOYMENT_MODE}}\n"
    "\n"
    ".PHONY: help tester auto-build-tester live auto-build-live deps clean test system-check\n"
    ".DEFAULT_GOAL := help\n"
    "\n"
    "SHELL := /bin/bash\n"
    "PROJECT_NAME := {{PROJECT_NAME}}\n"
    "PACKAGE_NAME := {{PACKAGE_NAME}}\n"
    "BUNDLE_ID := {{BUNDLE_ID}}\n"
    "DEPLOYKIT ?= deploykit\n"
    "VERSION_FULL := $(shell grep -m1 '^version:' pubspec.yaml | sed 's/version:[[:space:]]*//')\n"
    "VERSION_NAME := $(firstword $(subst +, ,$(VERSION_FULL)))\n"
    "\n"
    "help: ## Show this help message\n"
    "\t@echo \"$(PROJECT_NAME) - Flutter CI/CD\"\n"
    "\t@echo \"Version: $(VERSION_FULL)\"\n"
    "\t@echo\n"
    "\t@grep -E '^[a-zA-Z_-]+:.*?## .*$$' $(MAKEFILE_LIST) | awk 'BEGIN {FS = \":.*?## \"}; {printf \"  %-20s %s\\n\", $$1, $$2}'\n"
    "\n"
    "tester: auto-build-tester ## Build and upload a beta to internal testing / TestFlight\n"
    "\n"
    "auto-build-tester: ## Bump the build number, build and upload to testers\n"
    "\t$(DEPLOYKIT) beta --path . --platform all\n"
    "\n"
    "live: auto-build-live ## Release to production\n"
    "\n"
    "auto-build-live: ## Bump the version, build and release ({{DEPLOYMENT_MODE}})\n"
    "{{LIVE_DEPLOY_RECIPE}}\n"
    "\n"
    "deps: ## Install Flutter packages, Ruby gems and CocoaPods\n"
    "\tflutter pub get\n"
    "\tbundle install\n"
    "\t@if [ -d ios ] && command -v pod >/dev/null 2>&1; then cd ios && pod install; fi\n"
    "\n"
    "clean: ## Remove build output and decoded credentials\n"
    "\t$(DEPLOYKIT) clean --path . --platform all\n"
    "\n"
    "test: ## Run analyzer and tests\n"
    "\tflutter analyze\n"
    "\tflutter test\n"
    "\n"
    "system-check: ## Check required tools\n"
    "\t@for tool in flutter git ruby bundle fastlane gh $(DEPLOYKIT); do \\\n"
    "\t\tif command -v $$tool >/dev/null 2>&1; then echo \"  ok       $$tool\"; else echo \"  missing  $$tool\"; fi; \\\n"
    "\tdone\n"
    "\t@flutter --version 2>/dev/null | head -1 || true\n"
)

PLACEHOLDERS = frozenset({
    "APP_NAME",
    "PROJECT_NAME",
    "PACKAGE_NAME",
    "BUNDLE_ID",
    "GENERATION_DATE",
    "DEPLOYMENT_MODE",
    "LIVE_DEPLOY_RECIPE",
})

LOCAL_LIVE_RECIPE = "\t$(DEPLOYKIT) release --path . --platform all"

# make expands the whole recipe before the bump runs, so the new version
# is re-read in the shell. Missing repository secrets stop the recipe
# before anything is committed.
GITHUB_LIVE_RECIPE = (
    "\t$(DEPLOYKIT) secrets --path .\n"
    "\t$(DEPLOYKIT) bump --path . --kind minor\n"
    "\tflutter build appbundle --release\n"
    "\t@VERSION_NAME=$$(grep -m1 '^version:' pubspec.yaml | sed 's/version:[[:space:]]*//' | cut -d+ -f1); \\\n"
    "\t\tgit add pubspec.yaml && git commit -m \"chore: release v$$VERSION_NAME\" && \\\n"
    "\t\tgit tag \"v$$VERSION_NAME\" && git push origin HEAD && git push origin \"v$$VERSION_NAME\" && \\\n"
    "\t\techo \"Pushed v$$VERSION_NAME; GitHub Actions will deploy it.\""
)
