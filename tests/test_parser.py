"""Tests for the desired configuration parser."""
import base64

import pytest

from node_agent.config_engine import (
    DEFAULT_FILE_PERMISSIONS,
    ConfigParser,
    Encoding,
    FileContent,
    ParseError,
    UnitCommand,
    compute_checksum,
    decode_content,
)


class TestConfigParser:
    """Tests for the ConfigParser."""

    def test_parse_empty_document(self):
        """An empty document is an empty configuration."""
        result = ConfigParser().parse(b"")

        assert result.files == []
        assert result.units == []

    def test_parse_files(self):
        """Parse file entries with inline content."""
        raw = b"""
files:
- path: /etc/foo.conf
  permissions: 0644
  content:
    inline:
      data: hello
- path: /etc/bar.bin
  content:
    inline:
      encoding: b64
      data: aGk=
"""
        result = ConfigParser().parse(raw)

        assert len(result.files) == 2
        foo, bar = result.files
        assert foo.path == "/etc/foo.conf"
        assert foo.permissions == 0o644
        assert foo.content == FileContent(data="hello", encoding=Encoding.NONE)
        assert bar.permissions == DEFAULT_FILE_PERMISSIONS
        assert bar.content.encoding == Encoding.BASE64

    def test_parse_permissions_as_octal_string(self):
        """Quoted permissions are read as octal."""
        raw = b"files:\n- path: /a\n  permissions: '755'\n"

        result = ConfigParser().parse(raw)

        assert result.files[0].permissions == 0o755

    def test_parse_invalid_permissions(self):
        """Non-octal permissions are rejected."""
        with pytest.raises(ParseError, match="Invalid permissions"):
            ConfigParser().parse(b"files:\n- path: /a\n  permissions: rwx\n")

    def test_file_without_inline_content(self):
        """Files without inline content carry no content."""
        raw = b"files:\n- path: /a\n  content:\n    secretRef:\n      name: x\n"

        result = ConfigParser().parse(raw)

        assert result.files[0].content is None

    def test_parse_units(self):
        """Parse units with drop-ins and defaults."""
        raw = b"""
units:
- name: foo.service
  content: "[Service]\\nExecStart=/bin/foo\\n"
  command: restart
  dropIns:
  - name: 10-env.conf
    content: "[Service]\\nEnvironment=A=1\\n"
- name: bar.service
  enable: false
  command: stop
"""
        result = ConfigParser().parse(raw)

        foo, bar = result.units
        assert foo.enabled is True
        assert foo.command == UnitCommand.START
        assert foo.content.startswith("[Service]")
        assert [d.name for d in foo.drop_ins] == ["10-env.conf"]
        assert foo.should_stop is False

        assert bar.enabled is False
        assert bar.command == UnitCommand.STOP
        assert bar.content is None
        assert bar.should_stop is True

    def test_disabled_unit_without_command_stops(self):
        """A disabled unit is stopped whatever the command says."""
        result = ConfigParser().parse(b"units:\n- name: a.service\n  enable: false\n")

        assert result.units[0].should_stop is True

    def test_parse_spec_wrapper(self):
        """Files and units may sit under a spec key."""
        raw = b"kind: OperatingSystemConfig\nspec:\n  units:\n  - name: a.service\n"

        result = ConfigParser().parse(raw)

        assert [u.name for u in result.units] == ["a.service"]

    def test_parse_invalid_command(self):
        """Unknown commands are rejected."""
        with pytest.raises(ParseError, match="Invalid command"):
            ConfigParser().parse(b"units:\n- name: a.service\n  command: reload\n")

    def test_parse_invalid_enable_flag(self):
        """The enable flag must be a boolean."""
        with pytest.raises(ParseError, match="Invalid enable flag"):
            ConfigParser().parse(b"units:\n- name: a.service\n  enable: maybe\n")

    def test_parse_invalid_encoding(self):
        """Unknown encodings are rejected."""
        raw = b"files:\n- path: /a\n  content:\n    inline:\n      encoding: gzip\n      data: x\n"

        with pytest.raises(ParseError, match="Invalid encoding"):
            ConfigParser().parse(raw)

    def test_parse_invalid_yaml(self):
        """Malformed YAML raises ParseError."""
        with pytest.raises(ParseError, match="Invalid YAML"):
            ConfigParser().parse(b"files: [\n")

    def test_parse_non_mapping(self):
        """A top-level list is rejected."""
        with pytest.raises(ParseError, match="must be a mapping"):
            ConfigParser().parse(b"- a\n- b\n")

    def test_missing_unit_name(self):
        """Units need a name."""
        with pytest.raises(ParseError, match="missing 'name'"):
            ConfigParser().parse(b"units:\n- content: x\n")


class TestDecodeContent:
    """Tests for inline content decoding."""

    def test_plain_content(self):
        assert decode_content(FileContent(data="héllo")) == "héllo".encode("utf-8")

    def test_base64_content(self):
        payload = bytes(range(256))
        encoded = base64.b64encode(payload).decode()

        assert decode_content(FileContent(data=encoded, encoding=Encoding.BASE64)) == payload

    def test_base64_with_line_breaks(self):
        """Wrapped base64 payloads decode like unwrapped ones."""
        content = FileContent(data="aGVs\nbG8=\n", encoding=Encoding.BASE64)

        assert decode_content(content) == b"hello"

    def test_invalid_base64(self):
        with pytest.raises(ParseError, match="Invalid base64"):
            decode_content(FileContent(data="not base64!", encoding=Encoding.BASE64))


class TestComputeChecksum:
    """Tests for the configuration checksum."""

    def test_checksum_format(self):
        checksum = compute_checksum(b"files: []\n")

        assert checksum.startswith("sha256:")
        assert len(checksum) == len("sha256:") + 64

    def test_byte_level_changes_change_checksum(self):
        """Semantically equal documents with different bytes differ."""
        assert compute_checksum(b"files: []\n") != compute_checksum(b"files: []  \n")

    def test_checksum_is_stable(self):
        assert compute_checksum(b"abc") == compute_checksum(b"abc")
