"""
Pytest configuration for reconciliation tests.

This file adds the project root to the Python path so that tests can import
from the domain, repositories, services and api packages, and the tests
directory itself so that the shared in-memory fakes can be imported.
"""

import sys
from pathlib import Path

tests_dir = Path(__file__).parent
project_root = tests_dir.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(tests_dir))
