import uvicorn

from icebreaker import __main__ as entrypoint


class TestServerEntrypoint:
    def test_serves_the_api_app(self, monkeypatch):
        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

        entrypoint.main()

        app, kwargs = calls[0]
        assert app == "icebreaker.main:app"
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 8000

    def test_port_from_config(self, monkeypatch):
        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))
        monkeypatch.setattr(entrypoint, "PORT", 9100)

        entrypoint.main()

        assert calls[0]["port"] == 9100
