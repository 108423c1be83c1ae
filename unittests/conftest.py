import pytest

from ovframework import MetadataStore, ValidationManager


@pytest.fixture
def store() -> MetadataStore:
    """An empty metadata store which is not shared with other tests"""
    return MetadataStore()


@pytest.fixture
def manager(store: MetadataStore) -> ValidationManager:
    return ValidationManager(store=store)
