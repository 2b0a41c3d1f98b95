"""
Global pytest configuration and fixtures for sqlmigrate tests

Provides:
- Temporary project tree with a migrations directory
- Helper for writing migration files
- Project preloaded with the users/email sample migrations
"""

import pytest

from samples import ADD_EMAIL, CREATE_USERS


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Project Tree
# ============================================================================

@pytest.fixture
def project_root(tmp_path):
    """Create an empty project with a db/migrations directory."""
    root = tmp_path / "project"
    (root / "db" / "migrations").mkdir(parents=True)
    return root


@pytest.fixture
def write_migration(project_root):
    """Return a helper writing migration files below the project root.

    Example:
        def test_something(write_migration):
            write_migration("1-create_users.sql", CREATE_USERS)
            write_migration("3-other.sql", "...", directory="plugins/x/migrations")
    """

    def _write(filename, content, directory="db/migrations"):
        path = project_root / directory / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def users_project(project_root, write_migration):
    """Project with 1-create_users.sql and 2-add_email.sql."""
    write_migration("1-create_users.sql", CREATE_USERS)
    write_migration("2-add_email.sql", ADD_EMAIL)
    return project_root
