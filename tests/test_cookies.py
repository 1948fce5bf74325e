"""Unit tests for dreamgate.core.cookies."""

import json

import pytest

from dreamgate.core.cookies import (
    Cookie,
    load_cookie_file,
    parse_cookies,
    parse_netscape_line,
    summarize_cookies,
)
from dreamgate.core.exceptions import ConfigurationException

HTTP_ONLY_LINE = "#HttpOnly_.capcut.com\tTRUE\t/\tTRUE\t1767225600\tsessionid\tabc123"


class TestParseNetscapeLine:
    def test_http_only_line(self):
        cookie = parse_netscape_line(HTTP_ONLY_LINE)
        assert cookie == Cookie(
            name="sessionid",
            value="abc123",
            domain=".capcut.com",
            path="/",
            expires=1767225600,
            http_only=True,
            secure=True,
            include_subdomains=True,
        )

    def test_plain_line(self):
        cookie = parse_netscape_line("dreamina.capcut.com\tFALSE\t/ai-tool\tFALSE\t0\tlang\ten")
        assert cookie is not None
        assert cookie.http_only is False
        assert cookie.secure is False
        assert cookie.include_subdomains is False
        assert cookie.path == "/ai-tool"

    def test_secure_flag_case_insensitive(self):
        cookie = parse_netscape_line(".capcut.com\tTRUE\t/\ttrue\t0\tk\tv")
        assert cookie.secure is True

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "   ",
            "# Netscape HTTP Cookie File",
            ".capcut.com\tTRUE\t/\tTRUE\t0\tonly_six",
            ".capcut.com\tTRUE\t/\tTRUE\t0\t\tvalue",
            "\tTRUE\t/\tTRUE\t0\tname\tvalue",
        ],
    )
    def test_skipped_lines(self, line):
        assert parse_netscape_line(line) is None

    def test_non_numeric_expiry_becomes_session_cookie(self):
        cookie = parse_netscape_line(".capcut.com\tTRUE\t/\tFALSE\tsoon\tk\tv")
        assert cookie.expires == -1

    def test_value_may_be_empty(self):
        cookie = parse_netscape_line(".capcut.com\tTRUE\t/\tFALSE\t0\tk\t")
        assert cookie is not None
        assert cookie.value == ""


class TestParseCookies:
    def test_malformed_lines_are_skipped_not_fatal(self):
        content = "\n".join(
            [
                "# Netscape HTTP Cookie File",
                HTTP_ONLY_LINE,
                "garbage without tabs",
                ".capcut.com\tTRUE\t/\tFALSE\t0\tuid\t42",
            ]
        )
        cookies = parse_cookies(content)
        assert [c.name for c in cookies] == ["sessionid", "uid"]

    def test_crlf_line_endings(self):
        content = HTTP_ONLY_LINE + "\r\n" + ".capcut.com\tTRUE\t/\tFALSE\t0\tuid\t42\r\n"
        cookies = parse_cookies(content)
        assert [c.value for c in cookies] == ["abc123", "42"]

    def test_json_export(self):
        content = json.dumps(
            [
                {
                    "name": "sessionid",
                    "value": "abc",
                    "domain": ".capcut.com",
                    "path": "/",
                    "expirationDate": 1767225600.5,
                    "httpOnly": True,
                    "secure": True,
                    "sameSite": "no_restriction",
                },
                {"name": "", "value": "dropped", "domain": ".capcut.com"},
                {"name": "lang", "value": "en", "domain": "dreamina.capcut.com", "sameSite": "weird"},
            ]
        )
        cookies = parse_cookies(content)
        assert len(cookies) == 2
        assert cookies[0].expires == 1767225600
        assert cookies[0].same_site == "None"
        assert cookies[0].include_subdomains is True
        assert cookies[1].same_site == "Lax"
        assert cookies[1].include_subdomains is False


class TestCookieConversion:
    def test_to_playwright(self):
        cookie = parse_netscape_line(HTTP_ONLY_LINE)
        assert cookie.to_playwright() == {
            "name": "sessionid",
            "value": "abc123",
            "domain": ".capcut.com",
            "path": "/",
            "expires": 1767225600,
            "httpOnly": True,
            "secure": True,
            "sameSite": "Lax",
        }

    def test_zero_expiry_is_session_cookie_for_playwright(self):
        cookie = Cookie(name="k", value="v", domain=".capcut.com", expires=0)
        assert cookie.to_playwright()["expires"] == -1

    def test_netscape_round_trip(self):
        cookie = parse_netscape_line(HTTP_ONLY_LINE)
        assert cookie.to_netscape() == HTTP_ONLY_LINE
        assert parse_netscape_line(cookie.to_netscape()) == cookie


class TestLoadCookieFile:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_cookie_file(tmp_path / "nope.txt")

    def test_reads_file(self, tmp_path):
        path = tmp_path / "cookies.txt"
        path.write_text("# header\n" + HTTP_ONLY_LINE + "\n", encoding="utf-8")
        cookies = load_cookie_file(path)
        assert len(cookies) == 1
        assert summarize_cookies(cookies) == {".capcut.com": 1}

    @pytest.mark.parametrize(
        "content",
        [b"\xff\xfe\x00bad", b"[{not json"],
        ids=["invalid-utf8", "broken-json"],
    )
    def test_unreadable_file_is_a_configuration_error(self, tmp_path, content):
        path = tmp_path / "cookies.txt"
        path.write_bytes(content)
        with pytest.raises(ConfigurationException, match="unreadable cookie file"):
            load_cookie_file(path)

    def test_non_object_json_entries_are_skipped(self, tmp_path):
        path = tmp_path / "cookies.json"
        entry = {"name": "sessionid", "value": "abc", "domain": ".capcut.com"}
        path.write_text(json.dumps(["junk", 3, entry]), encoding="utf-8")
        assert [c.name for c in load_cookie_file(path)] == ["sessionid"]
