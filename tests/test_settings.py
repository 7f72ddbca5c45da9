from pathlib import Path

from settings import DEFAULT_EDITOR, Settings


def test_defaults_when_environment_is_empty():
    settings = Settings.from_env({})

    assert settings.djvused == "djvused"
    assert settings.editor == DEFAULT_EDITOR
    assert settings.log_file is None
    assert settings.log_level == "WARNING"


def test_environment_values():
    settings = Settings.from_env(
        {
            "DJVUSED": "/opt/djvulibre/bin/djvused",
            "EDITOR": "nano",
            "VISUAL": "code --wait",
            "DJVU_NAV_EDIT_LOG": "/tmp/nav-edit.log",
            "DJVU_NAV_EDIT_LOG_LEVEL": "debug",
        }
    )

    assert settings.djvused == "/opt/djvulibre/bin/djvused"
    assert settings.editor == "code --wait"
    assert settings.log_file == Path("/tmp/nav-edit.log")
    assert settings.log_level == "DEBUG"


def test_flags_override_only_what_they_set():
    base = Settings.from_env({"EDITOR": "nano"})

    settings = base.with_overrides(djvused="./djvused", log_level="info")

    assert settings.djvused == "./djvused"
    assert settings.editor == "nano"
    assert settings.log_level == "INFO"
    assert base.djvused == "djvused"
