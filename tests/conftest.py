"""Root pytest configuration for all tests.

Provides the in-memory Notion workspace and an API gateway wired to it with
sleeps disabled, plus a helper for writing markdown corpora to tmp_path.
"""

from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import Mock

import pytest

from notation.notion_api.api_wrapper import APIWrapper
from notation.notion_api.auth import Credentials
from notation.notion_api.rate_limiter import RateLimiter
from notation.notion_api.retry_logic import RetryPolicy
from tests.helpers.fake_notion import FakeNotion


@pytest.fixture
def fake_notion():
    """Empty in-memory Notion workspace."""
    return FakeNotion()


@pytest.fixture
def parent_page(fake_notion):
    """Id of the target parent page 'Engineering Docs'."""
    return fake_notion.add_page("Engineering Docs")


@pytest.fixture
def mock_authenticator():
    auth = Mock()
    auth.get_credentials.return_value = Credentials(token="secret_testtoken123")
    return auth


@pytest.fixture
def make_api(fake_notion, mock_authenticator):
    """Factory for APIWrapper instances talking to the fake workspace.

    Retry sleeps are recorded in the ``sleeps`` list passed in (if any)
    instead of being slept.
    """
    def factory(
        max_blocks_per_request: int = 100,
        sleeps: Optional[List[float]] = None,
        max_attempts: int = 5,
    ) -> APIWrapper:
        record = sleeps.append if sleeps is not None else (lambda seconds: None)
        return APIWrapper(
            mock_authenticator,
            rate_limiter=RateLimiter(rate=1000.0, burst=1000, sleep=lambda seconds: None),
            retry_policy=RetryPolicy(max_attempts=max_attempts, jitter=0.0, sleep=record),
            max_blocks_per_request=max_blocks_per_request,
            session=fake_notion,
        )
    return factory


@pytest.fixture
def write_corpus(tmp_path):
    """Write a {relative path: content} mapping below tmp_path/docs."""
    def write(files: Dict[str, str], root_name: str = "docs") -> Path:
        root = tmp_path / root_name
        root.mkdir(parents=True, exist_ok=True)
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root
    return write
