# Copyright 2025 John Brosnihan
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Shared pytest fixtures."""

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from db_helper import close_test_db, open_test_db


@pytest.fixture
def working_dir(tmp_path):
    """Directory plans are written under for a single test."""
    return str(tmp_path)


@pytest.fixture
def client(working_dir):
    """Create a test client whose default working directory is a temp dir."""
    app = create_app(default_working_dir=working_dir)
    return TestClient(app)


@pytest.fixture
def test_db():
    """Provide an isolated in-memory session database per test."""
    with open_test_db() as db:
        yield db


@pytest.fixture(autouse=True)
def _close_shared_test_db():
    """Make sure the shared test database never outlives a test."""
    yield
    close_test_db()
