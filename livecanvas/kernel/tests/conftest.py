"""
Kernel test configuration.

Shared fixtures: an empty file system and a small React project.
"""

import pytest

from livecanvas.kernel.tests.samples import APP_JSX, BUTTON_JSX, STYLES_CSS
from livecanvas.kernel.vfs import FileSystem


@pytest.fixture
def fs():
    return FileSystem()


@pytest.fixture
def project():
    return FileSystem.from_files({
        "/App.jsx": APP_JSX,
        "/components/Button.jsx": BUTTON_JSX,
        "/styles.css": STYLES_CSS,
    })
