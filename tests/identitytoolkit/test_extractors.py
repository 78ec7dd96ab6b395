import pytest
from flask import Flask

from identitytoolkit import BearerExtractor, CookieExtractor, MissingToken


def test_cookie_extractor_ok(app: Flask):
    extractor = CookieExtractor()

    with app.test_request_context("/", headers={"Cookie": "gtoken=abc.def.ghi"}):
        assert extractor.extract() == "abc.def.ghi"


def test_cookie_extractor_custom_name(app: Flask):
    extractor = CookieExtractor("gitkit")

    with app.test_request_context("/", headers={"Cookie": "gtoken=x; gitkit=abc"}):
        assert extractor.extract() == "abc"


def test_cookie_extractor_missing(app: Flask):
    extractor = CookieExtractor()

    with app.test_request_context("/"):
        with pytest.raises(MissingToken, match="Missing cookie 'gtoken'"):
            extractor.extract()


def test_cookie_extractor_empty_name():
    with pytest.raises(ValueError):
        CookieExtractor("  ")


def test_bearer_extractor_missing(app: Flask):
    extractor = BearerExtractor()

    with app.test_request_context("/", headers={}):
        with pytest.raises(MissingToken, match="Missing Authorization header"):
            extractor.extract()


def test_bearer_extractor_ok(app: Flask):
    extractor = BearerExtractor()

    with app.test_request_context("/", headers={"Authorization": "Bearer abc.def.ghi"}):
        assert extractor.extract() == "abc.def.ghi"


@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer   "])
def test_bearer_extractor_bad_header(app: Flask, header: str):
    extractor = BearerExtractor()

    with app.test_request_context("/", headers={"Authorization": header}):
        with pytest.raises(MissingToken):
            extractor.extract()
