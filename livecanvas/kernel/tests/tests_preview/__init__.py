"""
livecanvas Preview Document Test Suite

Test Files:
1. test_render_preview.py - Document assembly, diagnostics and escaping
"""
