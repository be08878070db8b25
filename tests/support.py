"""Constants shared by fixtures and tests."""

VENDOR_ID = "VENDOR_ALPHA"
DEAD_VENDOR_ID = "VENDOR_GONE"
AUDIO_BYTES = b"ID3\x03\x00fake-mp3-payload" * 64
COVER_BYTES = b"\x89PNG\r\n\x1a\nfake-cover"
