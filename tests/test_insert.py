import main
import database
from exceptions import PersistenceError
from security import sign_value, unsign_value
from utils.code_generator import Identifier


def _post(client, data: dict, **kwargs):
    return client.post("/", data=data, follow_redirects=False, **kwargs)


def _uid(response) -> int:
    signed = response.cookies.get("uid")
    assert signed is not None
    value = unsign_value(signed, main.COOKIE_SECRET)
    assert value is not None
    return int(value)


class TestInsert:
    def test_insert_and_view(self, client) -> None:
        res = _post(client, {"text": "FooBarBaz", "extension": "rs"})
        assert res.status_code == 303

        location = res.headers["location"]
        assert location.startswith("/")
        assert location.endswith(".rs")

        res = client.get(location, headers={"Accept": "text/html; charset=utf-8"})
        assert res.status_code == 200
        assert "text/html" in res.headers["content-type"]
        assert "FooBarBaz" in res.text
        assert f"/raw{location}" in res.text

        res = client.get(f"/raw{location}")
        assert res.status_code == 200
        assert "text/plain" in res.headers["content-type"]
        assert res.text == "FooBarBaz"

    def test_missing_text(self, client) -> None:
        res = _post(client, {"Hello": "World"})
        assert res.status_code == 422

    def test_empty_text_is_accepted(self, client) -> None:
        res = _post(client, {"text": ""})
        assert res.status_code == 303

        raw = client.get(f"/raw{res.headers['location']}")
        assert raw.status_code == 200
        assert raw.text == ""

    def test_unknown_paste(self, client) -> None:
        assert client.get("/aaaaaa").status_code == 404
        assert client.get("/not-an-id").status_code == 404

    def test_password_protected_paste_is_not_served(self, client) -> None:
        res = _post(client, {"text": "secret", "password": "hunter2"})
        assert res.status_code == 303
        assert client.get(res.headers["location"]).status_code == 403


class TestOwnerCookie:
    def test_cookie_attributes(self, client) -> None:
        res = _post(client, {"text": "a"})
        header = res.headers["set-cookie"].lower()
        assert header.startswith("uid=")
        assert "httponly" in header
        assert "samesite=strict" in header
        assert "secure" not in header

    def test_secure_when_origin_matches_host(self, client) -> None:
        res = _post(client, {"text": "a"}, headers={"Origin": "https://testserver"})
        assert "secure" in res.headers["set-cookie"].lower()

    def test_new_owner_per_uncookied_request_and_reuse(self, client) -> None:
        client.cookies.clear()
        first = _post(client, {"text": "one"})
        client.cookies.clear()
        second = _post(client, {"text": "two"})
        client.cookies.clear()

        assert _uid(first) != _uid(second)

        signed = first.cookies.get("uid")
        third = _post(client, {"text": "three"}, headers={"Cookie": f"uid={signed}"})
        assert third.status_code == 303
        assert _uid(third) == _uid(first)

    def test_tampered_cookie_gets_fresh_owner(self, client) -> None:
        client.cookies.clear()
        res = _post(client, {"text": "a"}, headers={"Cookie": "uid=5.deadbeef"})
        assert res.status_code == 303
        assert _uid(res) == 1

    def test_signed_non_integer_cookie_fails(self, client) -> None:
        client.cookies.clear()
        signed = sign_value("abc", main.COOKIE_SECRET)
        res = _post(client, {"text": "a"}, headers={"Cookie": f"uid={signed}"})
        assert res.status_code == 400
        assert "set-cookie" not in res.headers


class TestBurnAfterReading:
    def test_location_is_under_burn(self, client) -> None:
        res = _post(client, {"text": "gone soon", "burn-after-reading": "on"})
        assert res.status_code == 303
        location = res.headers["location"]
        assert location.startswith("/burn/")

        page = client.get(location)
        assert page.status_code == 200

        paste_path = location[len("/burn"):]
        assert paste_path in page.text
        first = client.get(paste_path)
        assert first.status_code == 200
        assert "gone soon" in first.text
        assert f"/raw{paste_path}" not in first.text
        assert client.get(paste_path).status_code == 404

    def test_other_values_are_not_burned(self, client) -> None:
        res = _post(client, {"text": "stays", "burn-after-reading": "true"})
        location = res.headers["location"]
        assert not location.startswith("/burn/")
        assert client.get(location).status_code == 200
        assert client.get(location).status_code == 200


class TestFailures:
    def test_identifier_allocation_failure(self, client, monkeypatch) -> None:
        def broken():
            raise RuntimeError("no entropy")

        monkeypatch.setattr(main, "generate_id", broken)
        res = _post(client, {"text": "a"})
        assert res.status_code == 500
        assert "set-cookie" not in res.headers

    def test_persistence_failure(self, client, monkeypatch) -> None:
        async def broken(identifier, entry):
            raise PersistenceError("disk full")

        monkeypatch.setattr(database, "insert", broken)
        res = _post(client, {"text": "a"})
        assert res.status_code == 500
        assert "disk full" in res.text

    def test_identifier_collision_is_rejected(self, client, monkeypatch) -> None:
        monkeypatch.setattr(main, "generate_id", lambda: Identifier(42))
        first = _post(client, {"text": "original"})
        assert first.status_code == 303

        second = _post(client, {"text": "intruder"})
        assert second.status_code == 500

        res = client.get(f"/raw{first.headers['location']}")
        assert res.text == "original"


class TestTemplates:
    def test_templates_ship_as_html_files(self) -> None:
        names = {path.name for path in main.TEMPLATES_PATH.iterdir()}
        assert {"base.html", "index.html", "paste.html", "burn.html", "error.html"} <= names
        assert all(name.endswith(".html") for name in names)
