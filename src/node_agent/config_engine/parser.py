"""Parser for desired configuration documents.

Converts raw YAML bytes to strongly-typed DesiredConfig objects.
"""
import base64
import binascii
import hashlib
from typing import Any, Optional, Union

import yaml

from .schema import (
    DEFAULT_FILE_PERMISSIONS,
    DesiredConfig,
    DesiredFile,
    DesiredUnit,
    DropIn,
    Encoding,
    FileContent,
    UnitCommand,
)

# Accepted spellings of the transfer encodings
ENCODING_ALIASES = {
    "": Encoding.NONE,
    "b64": Encoding.BASE64,
    "base64": Encoding.BASE64,
}

# "restart" is accepted for compatibility and handled like "start"
COMMAND_ALIASES = {
    "start": UnitCommand.START,
    "restart": UnitCommand.START,
    "stop": UnitCommand.STOP,
}


class ParseError(Exception):
    """Error parsing or decoding a desired configuration."""
    pass


class ConfigParser:
    """Parse a desired configuration from its YAML document."""

    def parse(self, raw: Union[bytes, str]) -> DesiredConfig:
        """
        Parse raw configuration bytes into a DesiredConfig object.

        The document may either hold ``files``/``units`` at the top level or
        be a full OperatingSystemConfig object carrying them under ``spec``.

        Args:
            raw: YAML document

        Returns:
            DesiredConfig object

        Raises:
            ParseError: If the document is invalid
        """
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid YAML document: {e}") from e

        return self.parse_dict(data or {})

    def parse_dict(self, config: dict[str, Any]) -> DesiredConfig:
        """Parse an already loaded configuration mapping."""
        if not isinstance(config, dict):
            raise ParseError(
                f"Configuration must be a mapping, got {type(config).__name__}"
            )

        spec = config.get("spec")
        if isinstance(spec, dict):
            config = spec

        files = [
            self._parse_file(index, item)
            for index, item in enumerate(self._as_list(config.get("files"), "files"))
        ]
        units = [
            self._parse_unit(index, item)
            for index, item in enumerate(self._as_list(config.get("units"), "units"))
        ]

        return DesiredConfig(files=files, units=units)

    def _as_list(self, value: Any, field_name: str) -> list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ParseError(f"Field '{field_name}' must be a list")
        return value

    def _parse_file(self, index: int, config: Any) -> DesiredFile:
        """Parse a single file entry."""
        if not isinstance(config, dict):
            raise ParseError(f"File entry #{index} must be a mapping")

        path = config.get("path")
        if not path or not isinstance(path, str):
            raise ParseError(f"File entry #{index} is missing 'path'")

        return DesiredFile(
            path=path,
            content=self._parse_file_content(path, config.get("content")),
            permissions=self._parse_permissions(path, config.get("permissions")),
        )

    def _parse_file_content(self, path: str, content: Any) -> Optional[FileContent]:
        """
        Parse the content block of a file.

        Only inline content is managed; anything else (e.g. a secretRef)
        yields None and the file is skipped when applying.
        """
        if content is None:
            return None
        if not isinstance(content, dict):
            raise ParseError(f"Content of file {path} must be a mapping")

        inline = content.get("inline")
        if inline is None:
            return None
        if not isinstance(inline, dict):
            raise ParseError(f"Inline content of file {path} must be a mapping")

        encoding_str = inline.get("encoding") or ""
        try:
            encoding = ENCODING_ALIASES[encoding_str]
        except (KeyError, TypeError):
            raise ParseError(
                f"Invalid encoding for file {path}: {encoding_str}. "
                f"Must be one of {sorted(ENCODING_ALIASES)}"
            )

        data = inline.get("data", "")
        if not isinstance(data, str):
            raise ParseError(f"Inline data of file {path} must be a string")

        return FileContent(data=data, encoding=encoding)

    def _parse_permissions(self, path: str, value: Any) -> int:
        """Parse permission bits given as int or octal string."""
        if value is None:
            return DEFAULT_FILE_PERMISSIONS
        if isinstance(value, bool):
            raise ParseError(f"Invalid permissions for file {path}: {value}")
        if isinstance(value, int):
            return value
        try:
            return int(str(value), 8)
        except ValueError:
            raise ParseError(f"Invalid permissions for file {path}: {value}")

    def _parse_unit(self, index: int, config: Any) -> DesiredUnit:
        """Parse a single unit entry."""
        if not isinstance(config, dict):
            raise ParseError(f"Unit entry #{index} must be a mapping")

        name = config.get("name")
        if not name or not isinstance(name, str):
            raise ParseError(f"Unit entry #{index} is missing 'name'")

        content = config.get("content")
        if content is not None and not isinstance(content, str):
            raise ParseError(f"Content of unit {name} must be a string")

        enabled = config.get("enable", config.get("enabled", True))
        if enabled is None:
            enabled = True
        if not isinstance(enabled, bool):
            raise ParseError(f"Invalid enable flag for unit {name}: {enabled}")

        command = None
        command_str = config.get("command")
        if command_str is not None:
            try:
                command = COMMAND_ALIASES[str(command_str).lower()]
            except KeyError:
                raise ParseError(
                    f"Invalid command for unit {name}: {command_str}. "
                    f"Must be one of {sorted(COMMAND_ALIASES)}"
                )

        drop_ins_config = config.get("dropIns", config.get("drop_ins"))
        drop_ins = [
            self._parse_drop_in(name, item)
            for item in self._as_list(drop_ins_config, f"{name}.dropIns")
        ]

        return DesiredUnit(
            name=name,
            content=content,
            enabled=enabled,
            command=command,
            drop_ins=drop_ins,
        )

    def _parse_drop_in(self, unit_name: str, config: Any) -> DropIn:
        if not isinstance(config, dict):
            raise ParseError(f"Drop-in of unit {unit_name} must be a mapping")

        name = config.get("name")
        if not name or not isinstance(name, str):
            raise ParseError(f"Drop-in of unit {unit_name} is missing 'name'")

        content = config.get("content", "")
        if not isinstance(content, str):
            raise ParseError(
                f"Content of drop-in {name} for unit {unit_name} must be a string"
            )

        return DropIn(name=name, content=content)


def decode_content(content: FileContent) -> bytes:
    """
    Decode inline file content to the bytes that belong on disk.

    Raises:
        ParseError: If the payload is not valid for its encoding
    """
    if content.encoding == Encoding.BASE64:
        try:
            # Line breaks are ignored, like most base64 decoders do
            return base64.b64decode("".join(content.data.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ParseError(f"Invalid base64 payload: {e}") from e

    return content.data.encode("utf-8")


def compute_checksum(raw: bytes) -> str:
    """
    Compute SHA256 checksum over the raw configuration bytes.

    Any byte-level change produces a different checksum, including changes
    that do not alter the parsed configuration.
    """
    return f"sha256:{hashlib.sha256(raw).hexdigest()}"
