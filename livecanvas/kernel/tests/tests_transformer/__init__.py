"""
livecanvas Transformer Test Suite

Tests for turning JSX/TSX sources into browser ES modules.

Test Files:
1. test_jsx_lowering.py - JSX elements, props and children to createElement
2. test_typescript_erasure.py - Type-only syntax removed, runtime code kept
3. test_imports.py - Specifier canonicalization and stylesheet imports
4. test_errors.py - Syntax and encoding errors as results
"""
