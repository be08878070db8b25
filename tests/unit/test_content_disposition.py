import pytest

from app.modules.drops.router import _content_disposition


class TestContentDisposition:
    def test_plain_ascii_title(self):
        assert _content_disposition("First Light", "mp3") == 'attachment; filename="First Light.mp3"'

    def test_non_ascii_title_gets_encoded_name(self):
        value = _content_disposition("Café", "flac")

        assert value == "attachment; filename=\"Caf.flac\"; filename*=UTF-8''Caf%C3%A9.flac"

    @pytest.mark.parametrize("title", ["Line\r\nBreak", "Tab\tbed", 'Say "hi"', "back\\slash"])
    def test_control_and_quote_characters_never_reach_header(self, title):
        value = _content_disposition(title, "mp3")

        assert "\r" not in value and "\n" not in value and "\t" not in value
        plain = value.split(";")[1]
        assert plain.count('"') == 2
        assert "\\" not in plain
        assert "filename*=UTF-8''" in value

    def test_title_with_nothing_printable(self):
        value = _content_disposition("日本", "")

        assert value.startswith('attachment; filename="download"')
