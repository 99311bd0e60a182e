"""Tests for model limit lookup."""

from __future__ import annotations

import pytest

from quill.limits import (
    DEFAULT_MODEL_LIMITS,
    ModelLimits,
    get_model_limits,
    register_model_limits,
    unregister_model_limits,
)


def test_glm_limits():
    limits = get_model_limits("glm-4.7")
    assert limits.context == 128000
    assert limits.output == 4096


@pytest.mark.parametrize("name", ["GLM-4.7", "zai/glm-4.7", "glm-4.7-coding", "GLM-4.7-Coding-Preview"])
def test_substring_match_is_case_insensitive(name):
    assert get_model_limits(name).context == 128000


@pytest.mark.parametrize("name", ["unknown-model", "", "gpt-ish", "glm-4"])
def test_unknown_models_use_default(name):
    limits = get_model_limits(name)
    assert limits == DEFAULT_MODEL_LIMITS
    assert limits.context == 8192
    assert limits.output == 4096


class TestRegisteredLimits:
    def teardown_method(self):
        unregister_model_limits("local-llama")
        unregister_model_limits("glm-4.7")

    def test_register_new_model(self):
        register_model_limits("Local-Llama", ModelLimits(context=32000, output=2048))
        assert get_model_limits("local-llama-3b").context == 32000

    def test_registered_overrides_builtin(self):
        register_model_limits("glm-4.7", ModelLimits(context=64000, output=1024))
        assert get_model_limits("glm-4.7").context == 64000

    def test_unregister_restores_builtin(self):
        register_model_limits("glm-4.7", ModelLimits(context=64000, output=1024))
        unregister_model_limits("glm-4.7")
        assert get_model_limits("glm-4.7").context == 128000
