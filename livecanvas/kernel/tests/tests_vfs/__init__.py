"""
livecanvas VFS Test Suite

Tests for the in-memory project tree and the editing commands on top of it.

Test Files:
1. test_vfs_crud.py - Create, read, update and delete
2. test_vfs_rename.py - Rename and move of files and directories
3. test_vfs_listing.py - Lazy listings and directory contents
4. test_vfs_persistence.py - Serialize and atomic load
5. test_vfs_events.py - Change notification and failing subscribers
6. test_commands.py - create / str_replace / insert / rename / delete / view
"""
