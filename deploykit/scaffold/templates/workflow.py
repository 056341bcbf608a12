"""GitHub Actions deploy workflow template.

GitHub expressions (``${{ ... }}``) contain spaces and lower-case names, so
they never collide with deploykit placeholders.
"""
from __future__ import annotations

TEMPLATE = '''\
# Deploy workflow for {{APP_NAME}} ({{PROJECT_NAME}})
# Generated by deploykit on {{GENERATION_DATE}}
name: Deploy {{PROJECT_NAME}}

on:
  push:
    tags:
      - "v*"
  workflow_dispatch:
    inputs:
      deploy_android:
        description: "Deploy Android to Google Play"
        type: boolean
        default: true
      deploy_ios:
        description: "Deploy iOS to the App Store"
        type: boolean
        default: true

env:
  FLUTTER_VERSION: "{{FLUTTER_VERSION}}"
  PACKAGE_NAME: "{{PACKAGE_NAME}}"
  BUNDLE_ID: "{{BUNDLE_ID}}"

jobs:
  deploy-android:
    name: Deploy Android
    runs-on: ubuntu-latest
    if: ${{ github.event_name == 'push' || inputs.deploy_android }}
    steps:
      - uses: actions/checkout@v4
        with:
          fetch-depth: 0

      - name: Check required secrets
        env:
          ANDROID_KEYSTORE_BASE64: ${{ secrets.ANDROID_KEYSTORE_BASE64 }}
          KEYSTORE_PASSWORD: ${{ secrets.KEYSTORE_PASSWORD }}
          PLAY_STORE_JSON_BASE64: ${{ secrets.PLAY_STORE_JSON_BASE64 }}
          PLAY_STORE_JSON_KEY_DATA: ${{ secrets.PLAY_STORE_JSON_KEY_DATA }}
        run: |
          missing=""
          for name in ANDROID_KEYSTORE_BASE64 KEYSTORE_PASSWORD; do
            [ -n "${!name}" ] || missing="$missing $name"
          done
          if [ -z "$PLAY_STORE_JSON_BASE64" ] && [ -z "$PLAY_STORE_JSON_KEY_DATA" ]; then
            missing="$missing PLAY_STORE_JSON_BASE64(or PLAY_STORE_JSON_KEY_DATA)"
          fi
          if [ -n "$missing" ]; then
            echo "::error::Missing repository secrets:$missing"
            exit 1
          fi

      - uses: actions/setup-java@v4
        with:
          distribution: temurin
          java-version: "17"

      - uses: subosito/flutter-action@v2
        with:
          flutter-version: ${{ env.FLUTTER_VERSION }}
          channel: stable
          cache: true

      - uses: ruby/setup-ruby@v1
        with:
          ruby-version: "3.2"
          bundler-cache: true

      - name: Decode signing material
        env:
          ANDROID_KEYSTORE_BASE64: ${{ secrets.ANDROID_KEYSTORE_BASE64 }}
          KEYSTORE_PASSWORD: ${{ secrets.KEYSTORE_PASSWORD }}
          KEY_ALIAS: ${{ secrets.KEY_ALIAS }}
          KEY_PASSWORD: ${{ secrets.KEY_PASSWORD }}
          PLAY_STORE_JSON_BASE64: ${{ secrets.PLAY_STORE_JSON_BASE64 }}
          PLAY_STORE_JSON_KEY_DATA: ${{ secrets.PLAY_STORE_JSON_KEY_DATA }}
        run: |
          echo "$ANDROID_KEYSTORE_BASE64" | base64 --decode > android/app/release.keystore
          {
            echo "storeFile=release.keystore"
            echo "storePassword=$KEYSTORE_PASSWORD"
            echo "keyAlias=${KEY_ALIAS:-upload}"
            echo "keyPassword=${KEY_PASSWORD:-$KEYSTORE_PASSWORD}"
          } > android/key.properties
          if [ -n "$PLAY_STORE_JSON_BASE64" ]; then
            echo "$PLAY_STORE_JSON_BASE64" | base64 --decode > android/fastlane/play_store_service_account.json
          else
            printf '%s' "$PLAY_STORE_JSON_KEY_DATA" > android/fastlane/play_store_service_account.json
          fi

      - name: Build app bundle
        run: |
          flutter pub get
          flutter build appbundle --release

      - name: Release notes
        run: |
          mkdir -p builder
          PREVIOUS_TAG=$(git describe --tags --abbrev=0 HEAD^ 2>/dev/null || true)
          if [ -n "$PREVIOUS_TAG" ]; then RANGE="$PREVIOUS_TAG..HEAD"; else RANGE="HEAD"; fi
          git log "$RANGE" --no-merges --pretty=format:"- %s (%an)" -n 50 > builder/changelog.txt || true
          [ -s builder/changelog.txt ] || echo "- Bug fixes and improvements" > builder/changelog.txt

      - name: Upload to Google Play
        working-directory: android
        run: bundle exec fastlane android release

      - name: Remove signing material
        if: always()
        run: rm -f android/app/release.keystore android/key.properties android/fastlane/play_store_service_account.json

  deploy-ios:
    name: Deploy iOS
    runs-on: macos-latest
    if: ${{ github.event_name == 'push' || inputs.deploy_ios }}
    steps:
      - uses: actions/checkout@v4
        with:
          fetch-depth: 0

      - name: Check required secrets
        env:
          APP_STORE_KEY_ID: ${{ secrets.APP_STORE_KEY_ID }}
          APP_STORE_ISSUER_ID: ${{ secrets.APP_STORE_ISSUER_ID }}
          APP_STORE_KEY_CONTENT: ${{ secrets.APP_STORE_KEY_CONTENT }}
          IOS_DIST_CERT_BASE64: ${{ secrets.IOS_DIST_CERT_BASE64 }}
          IOS_CERT_PASSWORD: ${{ secrets.IOS_CERT_PASSWORD }}
          IOS_PROVISIONING_PROFILE_BASE64: ${{ secrets.IOS_PROVISIONING_PROFILE_BASE64 }}
        run: |
          missing=""
          for name in APP_STORE_KEY_ID APP_STORE_ISSUER_ID APP_STORE_KEY_CONTENT; do
            [ -n "${!name}" ] || missing="$missing $name"
          done
          if [ -n "$IOS_DIST_CERT_BASE64$IOS_CERT_PASSWORD$IOS_PROVISIONING_PROFILE_BASE64" ]; then
            for name in IOS_DIST_CERT_BASE64 IOS_CERT_PASSWORD IOS_PROVISIONING_PROFILE_BASE64; do
              [ -n "${!name}" ] || missing="$missing $name"
            done
          fi
          if [ -n "$missing" ]; then
            echo "::error::Missing repository secrets:$missing"
            exit 1
          fi

      - uses: subosito/flutter-action@v2
        with:
          flutter-version: ${{ env.FLUTTER_VERSION }}
          channel: stable
          cache: true

      - uses: ruby/setup-ruby@v1
        with:
          ruby-version: "3.2"
          bundler-cache: true

      - name: Decode App Store Connect key
        env:
          APP_STORE_KEY_ID: ${{ secrets.APP_STORE_KEY_ID }}
          APP_STORE_KEY_CONTENT: ${{ secrets.APP_STORE_KEY_CONTENT }}
        run: |
          printf '%s' "$APP_STORE_KEY_CONTENT" > "ios/fastlane/AuthKey_${APP_STORE_KEY_ID}.p8"

      - name: Signing setup
        working-directory: ios
        env:
          USE_FASTLANE_MATCH: ${{ secrets.USE_FASTLANE_MATCH }}
          MATCH_PASSWORD: ${{ secrets.MATCH_PASSWORD }}
          MATCH_GIT_BASIC_AUTHORIZATION: ${{ secrets.MATCH_GIT_BASIC_AUTHORIZATION }}
          APP_STORE_KEY_ID: ${{ secrets.APP_STORE_KEY_ID }}
          APP_STORE_ISSUER_ID: ${{ secrets.APP_STORE_ISSUER_ID }}
          APP_STORE_KEY_CONTENT: ${{ secrets.APP_STORE_KEY_CONTENT }}
          IOS_DIST_CERT_BASE64: ${{ secrets.IOS_DIST_CERT_BASE64 }}
          IOS_CERT_PASSWORD: ${{ secrets.IOS_CERT_PASSWORD }}
          IOS_PROVISIONING_PROFILE_BASE64: ${{ secrets.IOS_PROVISIONING_PROFILE_BASE64 }}
        run: |
          if [ "$USE_FASTLANE_MATCH" != "true" ] && [ -n "$IOS_DIST_CERT_BASE64" ]; then
            echo "$IOS_DIST_CERT_BASE64" | base64 --decode > "$RUNNER_TEMP/distribution.p12"
            echo "$IOS_PROVISIONING_PROFILE_BASE64" | base64 --decode > "$RUNNER_TEMP/distribution.mobileprovision"
            bundle exec fastlane run setup_ci force:true
            bundle exec fastlane run import_certificate certificate_path:"$RUNNER_TEMP/distribution.p12" certificate_password:"$IOS_CERT_PASSWORD" keychain_name:fastlane_tmp_keychain
            bundle exec fastlane run install_provisioning_profile path:"$RUNNER_TEMP/distribution.mobileprovision"
          fi
          bundle exec fastlane ios setup

      - name: Build IPA
        run: |
          flutter pub get
          flutter build ipa --release --export-options-plist=ios/fastlane/ExportOptions.plist

      - name: Release notes
        run: |
          mkdir -p builder
          PREVIOUS_TAG=$(git describe --tags --abbrev=0 HEAD^ 2>/dev/null || true)
          if [ -n "$PREVIOUS_TAG" ]; then RANGE="$PREVIOUS_TAG..HEAD"; else RANGE="HEAD"; fi
          git log "$RANGE" --no-merges --pretty=format:"- %s (%an)" -n 50 > builder/changelog.txt || true
          [ -s builder/changelog.txt ] || echo "- Bug fixes and improvements" > builder/changelog.txt

      - name: Upload to App Store
        working-directory: ios
        env:
          APP_STORE_KEY_ID: ${{ secrets.APP_STORE_KEY_ID }}
          APP_STORE_ISSUER_ID: ${{ secrets.APP_STORE_ISSUER_ID }}
          APP_STORE_KEY_CONTENT: ${{ secrets.APP_STORE_KEY_CONTENT }}
          AUTO_SUBMIT_FOR_REVIEW: ${{ vars.AUTO_SUBMIT_FOR_REVIEW }}
          AUTO_RELEASE_AFTER_REVIEW: ${{ vars.AUTO_RELEASE_AFTER_REVIEW }}
        run: bundle exec fastlane ios release

      - name: Remove signing material
        if: always()
        run: rm -f ios/fastlane/AuthKey_*.p8 "$RUNNER_TEMP/distribution.p12" "$RUNNER_TEMP/distribution.mobileprovision"
'''

PLACEHOLDERS = frozenset({
    "APP_NAME",
    "PROJECT_NAME",
    "GENERATION_DATE",
    "FLUTTER_VERSION",
    "PACKAGE_NAME",
    "BUNDLE_ID",
})
