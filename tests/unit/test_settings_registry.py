import pytest

from config import route_from_settings
from config.registry import TEXT_GEN_KEY, bind_model, get_model, unbind_model
from config.settings import Settings
from llm_gateway import generate_text
from services.runtime import get_runtime


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.DB_PATH.endswith(".db")
    assert (settings.POOL_DEFAULT_TOTAL, settings.POOL_MIN_TOTAL, settings.POOL_MAX_TOTAL) == (100, 50, 200)
    assert settings.CACHE_DEFAULT_TTL_S == 300
    assert settings.ADAPTIVE_WINDOW == 3


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("POOL_RESIZE_STEP", "25")
    assert Settings(_env_file=None).POOL_RESIZE_STEP == 25


def test_route_from_settings():
    route = route_from_settings(Settings(_env_file=None, LLM_BASE_URL="http://llm.local/"))
    assert route.base_url == "http://llm.local"
    assert route.model == "gpt-4-turbo"


def test_registry_bind_and_retrieve():
    marker = object()
    bind_model(TEXT_GEN_KEY, lambda *_, **__: marker)
    assert get_model(TEXT_GEN_KEY)() is marker
    assert get_runtime().text_generator()("prompt") is marker

    unbind_model(TEXT_GEN_KEY)
    with pytest.raises(KeyError):
        get_model(TEXT_GEN_KEY)
    assert get_runtime().text_generator() is generate_text
