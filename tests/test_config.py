from diagram_backend.config import Config, _float, _int


def test_defaults_are_valid(monkeypatch):
    monkeypatch.setattr(Config, "GENERATION_PROVIDER", "worker")
    monkeypatch.setattr(Config, "GENERATION_MAX_CONCURRENCY", 1)
    monkeypatch.setattr(Config, "MIN_UTTERANCE_WORDS", 3)
    assert Config.validate() == []


def test_gemini_requires_key(monkeypatch):
    monkeypatch.setattr(Config, "GENERATION_PROVIDER", "gemini")
    monkeypatch.setattr(Config, "GEMINI_API_KEY", None)
    problems = Config.validate()
    assert any("GEMINI_API_KEY" in p for p in problems)


def test_unknown_provider_and_bad_numbers(monkeypatch):
    monkeypatch.setattr(Config, "GENERATION_PROVIDER", "carrier-pigeon")
    monkeypatch.setattr(Config, "GENERATION_MAX_CONCURRENCY", 0)
    monkeypatch.setattr(Config, "MIN_UTTERANCE_WORDS", -1)
    assert len(Config.validate()) == 3


def test_numeric_env_parsing(monkeypatch):
    monkeypatch.setenv("SOME_INT", "7")
    monkeypatch.setenv("SOME_FLOAT", "not a number")
    assert _int("SOME_INT", 1) == 7
    assert _float("SOME_FLOAT", 2.5) == 2.5
    assert _int("MISSING_INT_SETTING", 4) == 4
