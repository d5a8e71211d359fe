import pytest
from pydantic import ValidationError as PydanticValidationError

from workflow_core import EditorSettings


def test_defaults():
    settings = EditorSettings()
    assert settings.max_history == 50
    assert settings.paste_offset == (50, 50)


def test_env_overrides():
    settings = EditorSettings.from_env({
        "WORKFLOW_EDITOR_MAX_HISTORY": "10",
        "WORKFLOW_EDITOR_PASTE_OFFSET_X": "25",
        "WORKFLOW_EDITOR_CORS_ORIGINS": "http://a.test, http://b.test",
        "UNRELATED": "x",
    })
    assert settings.max_history == 10
    assert settings.paste_offset == (25, 50)
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


def test_invalid_history_bound():
    with pytest.raises(PydanticValidationError):
        EditorSettings.from_env({"WORKFLOW_EDITOR_MAX_HISTORY": "0"})
