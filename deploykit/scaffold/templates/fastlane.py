"""Fastlane Fastfile/Appfile templates for the android/ and ios/ directories.

The Fastfiles only upload, promote and clean: signing material and build
artifacts are prepared beforehand by ``deploykit`` (locally) or by the
workflow steps (in GitHub Actions). Every lane takes optional key:value
parameters so both callers can point it at the artifact they built.
"""
from __future__ import annotations

ANDROID_FASTFILE = '''\
# Fastfile for {{APP_NAME}} ({{PROJECT_NAME}}, Android)
# Generated by deploykit on {{GENERATION_DATE}}

default_platform(:android)

ROOT_DIR = File.expand_path("../..", __dir__)
DEFAULT_AAB = File.join(ROOT_DIR, "build/app/outputs/bundle/release/app-release.aab")
JSON_KEY_FILE = File.join(__dir__, "play_store_service_account.json")
CHANGELOG_FILE = File.join(ROOT_DIR, "builder/changelog.txt")
METADATA_DIR = File.join(__dir__, "metadata/android")

def release_notes(options)
  return options[:changelog] if options[:changelog]
  file = options[:changelog_file] || CHANGELOG_FILE
  File.exist?(file) ? File.read(file).strip : "- Bug fixes and improvements"
end

# Play Store takes a fraction; callers pass a percentage
def rollout_fraction(options)
  value = options[:rollout].to_s.strip
  return nil if value.empty? || value.to_f >= 100
  (value.to_f / 100).to_s
end

def write_changelog_metadata(notes)
  dir = File.join(METADATA_DIR, "en-US", "changelogs")
  FileUtils.mkdir_p(dir)
  File.write(File.join(dir, "default.txt"), notes)
end

def pubspec_version
  line = File.readlines(File.join(ROOT_DIR, "pubspec.yaml")).find { |l| l.start_with?("version:") }
  line.to_s.sub("version:", "").strip.delete(%q("'))
end

# Google Play rejects a version code that is not above every track's
def ensure_new_version_code
  return if ENV["SKIP_STORE_VERSION_CHECK"] == "true"
  local = pubspec_version.split("+", 2)[1].to_i
  highest = %w[internal alpha beta production].flat_map do |track|
    google_play_track_version_codes(package_name: "{{PACKAGE_NAME}}", json_key: JSON_KEY_FILE, track: track)
  rescue StandardError => e
    UI.important("Could not read #{track} version codes: #{e.message}")
    []
  end.max.to_i
  if local <= highest
    UI.user_error!("Version code #{local} is not above #{highest} on Google Play; bump the build number")
  end
  UI.success("Version code #{local} is above the Play Store's #{highest}")
end

platform :android do
  desc "Check the Play Store service account"
  lane :setup do
    UI.user_error!("Missing #{JSON_KEY_FILE}; run signing setup first") unless File.exist?(JSON_KEY_FILE)
    validate_play_store_json_key(json_key: JSON_KEY_FILE)
  end

  desc "Upload to a testing track (internal by default)"
  lane :beta do |options|
    ensure_new_version_code
    write_changelog_metadata(release_notes(options))
    upload_to_play_store(
      package_name: "{{PACKAGE_NAME}}",
      json_key: JSON_KEY_FILE,
      track: options[:track] || "internal",
      aab: options[:aab] || DEFAULT_AAB,
      metadata_path: METADATA_DIR,
      skip_upload_images: true,
      skip_upload_screenshots: true,
      skip_upload_metadata: true,
      skip_upload_changelogs: false
    )
  end

  desc "Upload to production, optionally as a staged rollout"
  lane :release do |options|
    ensure_new_version_code
    write_changelog_metadata(release_notes(options))
    params = {
      package_name: "{{PACKAGE_NAME}}",
      json_key: JSON_KEY_FILE,
      track: options[:track] || "production",
      aab: options[:aab] || DEFAULT_AAB,
      metadata_path: METADATA_DIR,
      skip_upload_images: true,
      skip_upload_screenshots: true,
      skip_upload_metadata: true,
      skip_upload_changelogs: false
    }
    fraction = rollout_fraction(options)
    params[:rollout] = fraction if fraction
    upload_to_play_store(params)
  end

  desc "Promote the latest release from one track to another"
  lane :promote do |options|
    params = {
      package_name: "{{PACKAGE_NAME}}",
      json_key: JSON_KEY_FILE,
      track: options[:from] || "internal",
      track_promote_to: options[:to] || "production",
      skip_upload_aab: true,
      skip_upload_apk: true,
      skip_upload_metadata: true,
      skip_upload_changelogs: true,
      skip_upload_images: true,
      skip_upload_screenshots: true
    }
    fraction = rollout_fraction(options)
    params[:rollout] = fraction if fraction
    upload_to_play_store(params)
  end

  desc "Remove build output and decoded credentials"
  lane :clean do
    sh("rm -rf '#{ROOT_DIR}/build' '#{ROOT_DIR}/android/build'")
    [JSON_KEY_FILE, File.join(ROOT_DIR, "android/key.properties"), File.join(ROOT_DIR, "android/app/release.keystore")].each do |path|
      File.delete(path) if File.exist?(path)
    end
  end
end
'''

ANDROID_FASTFILE_PLACEHOLDERS = frozenset({"APP_NAME", "PROJECT_NAME", "GENERATION_DATE", "PACKAGE_NAME"})

IOS_FASTFILE = '''\
# Fastfile for {{APP_NAME}} ({{PROJECT_NAME}}, iOS)
# Generated by deploykit on {{GENERATION_DATE}}

default_platform(:ios)

ROOT_DIR = File.expand_path("../..", __dir__)
CHANGELOG_FILE = File.join(ROOT_DIR, "builder/changelog.txt")
APP_IDENTIFIER = "{{BUNDLE_ID}}"
TEAM_ID = ENV["TEAM_ID"] || "{{TEAM_ID}}"
KEY_ID = ENV["APP_STORE_KEY_ID"] || "{{KEY_ID}}"
ISSUER_ID = ENV["APP_STORE_ISSUER_ID"] || "{{ISSUER_ID}}"

def release_notes(options)
  return options[:changelog] if options[:changelog]
  file = options[:changelog_file] || CHANGELOG_FILE
  File.exist?(file) ? File.read(file).strip : "- Bug fixes and improvements"
end

def default_ipa
  Dir[File.join(ROOT_DIR, "build/ios/ipa/*.ipa")].first
end

def pubspec_version
  line = File.readlines(File.join(ROOT_DIR, "pubspec.yaml")).find { |l| l.start_with?("version:") }
  line.to_s.sub("version:", "").strip.delete(%q("'))
end

def api_key
  key_file = File.join(__dir__, "AuthKey_#{KEY_ID}.p8")
  if File.exist?(key_file)
    app_store_connect_api_key(key_id: KEY_ID, issuer_id: ISSUER_ID, key_filepath: key_file, duration: 1200, in_house: false)
  else
    app_store_connect_api_key(key_id: KEY_ID, issuer_id: ISSUER_ID, key_content: ENV["APP_STORE_KEY_CONTENT"], duration: 1200, in_house: false)
  end
end

# App Store Connect rejects a build number already used for this version
def ensure_new_build_number
  return if ENV["SKIP_STORE_VERSION_CHECK"] == "true"
  name, build = pubspec_version.split("+", 2)
  latest = latest_testflight_build_number(
    api_key: api_key, app_identifier: APP_IDENTIFIER, version: name, initial_build_number: 0
  ).to_i
  if build.to_i <= latest
    UI.user_error!("Build #{build} of #{name} is not above #{latest} on App Store Connect; bump the build number")
  end
  UI.success("Build #{build} of #{name} is above App Store Connect's #{latest}")
end

platform :ios do
  desc "Fetch signing identities with match when enabled and check the API key"
  lane :setup do
    if ENV["USE_FASTLANE_MATCH"] == "true"
      match(type: "appstore", app_identifier: APP_IDENTIFIER, team_id: TEAM_ID, readonly: is_ci)
    end
    api_key
  end

  desc "Upload a build to TestFlight"
  lane :beta do |options|
    ensure_new_build_number
    upload_to_testflight(
      api_key: api_key,
      app_identifier: APP_IDENTIFIER,
      ipa: options[:ipa] || default_ipa,
      changelog: release_notes(options),
      skip_waiting_for_build_processing: true,
      distribute_external: false,
      notify_external_testers: false
    )
  end

  desc "Upload a build to the App Store"
  lane :release do |options|
    ensure_new_build_number
    notes = release_notes(options)
    upload_to_app_store(
      api_key: api_key,
      app_identifier: APP_IDENTIFIER,
      ipa: options[:ipa] || default_ipa,
      skip_screenshots: true,
      skip_metadata: false,
      skip_app_version_update: false,
      force: true,
      reject_if_possible: true,
      precheck_include_in_app_purchases: false,
      submit_for_review: ENV["AUTO_SUBMIT_FOR_REVIEW"] == "true",
      automatic_release: ENV["AUTO_RELEASE_AFTER_REVIEW"] == "true",
      release_notes: { "default" => notes, "en-US" => notes }
    )
  end

  desc "Remove build output and decoded credentials"
  lane :clean do
    sh("rm -rf '#{ROOT_DIR}/build/ios' '#{ROOT_DIR}/ios/build'")
    Dir[File.join(__dir__, "AuthKey_*.p8")].each { |path| File.delete(path) }
  end
end
'''

IOS_FASTFILE_PLACEHOLDERS = frozenset({
    "APP_NAME", "PROJECT_NAME", "GENERATION_DATE", "BUNDLE_ID", "TEAM_ID", "KEY_ID", "ISSUER_ID",
})

ANDROID_APPFILE = '''\
# Appfile for {{APP_NAME}} ({{PROJECT_NAME}}, Android)
json_key_file("fastlane/play_store_service_account.json")
package_name("{{PACKAGE_NAME}}")
'''

ANDROID_APPFILE_PLACEHOLDERS = frozenset({"APP_NAME", "PROJECT_NAME", "PACKAGE_NAME"})

IOS_APPFILE = '''\
# Appfile for {{APP_NAME}} ({{PROJECT_NAME}}, iOS)
app_identifier("{{BUNDLE_ID}}")
apple_id("{{APPLE_ID}}")
team_id("{{TEAM_ID}}")
'''

IOS_APPFILE_PLACEHOLDERS = frozenset({"APP_NAME", "PROJECT_NAME", "BUNDLE_ID", "APPLE_ID", "TEAM_ID"})
