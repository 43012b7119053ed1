import pytest
from pydantic import ValidationError

from upload_broker.core.config import Settings, get_settings
from upload_broker.main import create_app
from upload_broker.services.storage import MemoryStorageService


def test_settings_require_region(monkeypatch):
    monkeypatch.delenv("AWS_REGION", raising=False)

    with pytest.raises(ValidationError, match="AWS_REGION"):
        Settings(_env_file=None)


def test_settings_reject_empty_region(settings_factory):
    with pytest.raises(ValidationError):
        settings_factory(AWS_REGION="")


def test_create_app_fails_without_region(monkeypatch):
    monkeypatch.delenv("AWS_REGION", raising=False)
    get_settings.cache_clear()
    try:
        with pytest.raises(ValidationError):
            create_app(storage=MemoryStorageService())
    finally:
        get_settings.cache_clear()


def test_bucket_is_optional_at_startup(monkeypatch, settings_factory):
    monkeypatch.delenv("AWS_BUCKET", raising=False)

    app = create_app(settings=settings_factory(AWS_BUCKET=None), storage=MemoryStorageService())

    assert app.state.upload_broker.settings.aws_bucket is None
