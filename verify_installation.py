#!/usr/bin/env python3

import importlib
import sys

def check_dependency(name, package_name=None):
    package_name = package_name or name
    try:
        importlib.import_module(package_name)
        print(f"✅ {name}")
        return True
    except ImportError:
        print(f"❌ {name} - not installed")
        return False

def check_version(package_name, min_version=None):
    try:
        module = importlib.import_module(package_name)
        version = getattr(module, '__version__', None)
        if version is None:
            return True
        print(f"   Version: {version}")
        if min_version:
            from packaging import version as pkg_version
            if pkg_version.parse(version) >= pkg_version.parse(min_version):
                print(f"   ✅ Version {version} >= {min_version}")
            else:
                print(f"   ⚠️  Version {version} < {min_version} (recommended)")
        return True
    except Exception as e:
        print(f"   Error checking version: {e}")
        return False

def main():
    print("🔍 Checking textnav Dependencies...")
    print("=" * 50)

    ok = True

    print("\n📦 Core Dependencies:")
    ok &= check_dependency("requests")
    check_version("requests", "2.28.0")
    ok &= check_dependency("numpy")
    ok &= check_dependency("pyspellchecker", "spellchecker")

    print("\n🛠️ Development Tools:")
    check_dependency("pytest")

    print("\n" + "=" * 50)
    print("✅ Dependency check complete!")

    print("\n⚙️  Checking configuration...")
    try:
        from textnav.config import Config
        config = Config.load()
        print(f"✅ Data directory: {config.data_dir}")
        print(f"   Endpoint: {config.api_url}")
        if config.api_token:
            print("   ✅ HF_API_TOKEN configured")
        else:
            print("   ⚠️  No HF_API_TOKEN, remote requests will be anonymous")
    except Exception as e:
        print(f"❌ Error loading configuration: {e}")
        ok = False

    print("\n📖 Loading dictionary...")
    try:
        from textnav.local_check import SpellingDictionary
        dictionary = SpellingDictionary()
        print(f"✅ Dictionary loaded, 'teh' -> {dictionary.suggestions('teh')[:3]}")
    except Exception as e:
        print(f"❌ Error loading dictionary: {e}")
        ok = False

    return ok

if __name__ == "__main__":
    sys.exit(0 if main() else 1)
