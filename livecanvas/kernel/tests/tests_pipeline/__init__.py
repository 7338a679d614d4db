"""
livecanvas Pipeline Test Suite

Test Files:
1. test_pipeline.py - Runs, coalescing, handle lifecycle and degraded projects
"""
