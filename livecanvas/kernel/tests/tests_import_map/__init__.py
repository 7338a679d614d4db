"""
livecanvas Import Map Test Suite

Test Files:
1. test_resolution.py - Local module resolution and placeholders
2. test_packages_and_errors.py - CDN package URLs and compile-error stand-ins
"""
