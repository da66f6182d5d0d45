"""Pre-flight validation for desired configurations.

Catches logical errors before anything on the node is touched.
"""
import posixpath

from .schema import (
    DesiredConfig,
    ValidationResult,
)

# Unit types systemd knows about
UNIT_SUFFIXES = (
    ".service",
    ".socket",
    ".device",
    ".mount",
    ".automount",
    ".swap",
    ".target",
    ".path",
    ".timer",
    ".slice",
    ".scope",
)

MAX_PERMISSIONS = 0o7777


class ConfigValidator:
    """Validate a desired configuration for logical errors before applying."""

    def validate(self, desired: DesiredConfig) -> ValidationResult:
        """
        Validate a desired configuration.

        Performs pre-flight checks:
        - File paths are absolute, normalized and unique
        - Permission bits are in range
        - Unit names are unique and plain file names
        - Drop-in names are unique per unit

        Args:
            desired: The desired configuration to validate

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        self._validate_files(desired, errors, warnings)
        self._validate_units(desired, errors, warnings)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _validate_files(
        self,
        desired: DesiredConfig,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        """Validate file entries."""
        seen: set[str] = set()

        for file in desired.files:
            if not posixpath.isabs(file.path):
                errors.append(f"File path {file.path} must be absolute")
            elif posixpath.normpath(file.path) != file.path:
                errors.append(
                    f"File path {file.path} is not normalized "
                    f"(expected {posixpath.normpath(file.path)})"
                )

            if file.path in seen:
                errors.append(f"File {file.path} is defined more than once")
            seen.add(file.path)

            if not 0 <= file.permissions <= MAX_PERMISSIONS:
                errors.append(
                    f"Invalid permissions {oct(file.permissions)} for file {file.path}"
                )

            if file.content is None:
                warnings.append(
                    f"File {file.path} has no inline content and will be skipped"
                )

    def _validate_units(
        self,
        desired: DesiredConfig,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        """Validate unit entries and their drop-ins."""
        seen: set[str] = set()

        for unit in desired.units:
            if "/" in unit.name or unit.name in (".", ".."):
                errors.append(f"Invalid unit name {unit.name}")
                continue

            if unit.name in seen:
                errors.append(f"Unit {unit.name} is defined more than once")
            seen.add(unit.name)

            if not unit.name.endswith(UNIT_SUFFIXES):
                warnings.append(f"Unit {unit.name} has an unknown unit type suffix")

            drop_in_names: set[str] = set()
            for drop_in in unit.drop_ins:
                if "/" in drop_in.name or drop_in.name in (".", ".."):
                    errors.append(
                        f"Invalid drop-in name {drop_in.name} for unit {unit.name}"
                    )
                    continue

                if drop_in.name in drop_in_names:
                    errors.append(
                        f"Drop-in {drop_in.name} is defined more than once "
                        f"for unit {unit.name}"
                    )
                drop_in_names.add(drop_in.name)

                if not drop_in.name.endswith(".conf"):
                    warnings.append(
                        f"Drop-in {drop_in.name} for unit {unit.name} does not end "
                        f"in .conf and will be ignored by systemd"
                    )


class ConfigValidationError(Exception):
    """The desired configuration failed validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Validation failed: {'; '.join(errors)}")
