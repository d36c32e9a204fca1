"""The suite runs in rootdir import mode without packages, so module basenames must be unique."""

from collections import Counter
from pathlib import Path

TESTS_DIR = Path(__file__).parent


def test_test_module_basenames_are_unique():
    names = Counter(path.name for path in TESTS_DIR.rglob("test_*.py"))
    duplicates = sorted(name for name, count in names.items() if count > 1)
    assert duplicates == []
