"""Tests for the ConfigValidator."""
from node_agent.config_engine import (
    ConfigValidator,
    DesiredConfig,
    DesiredFile,
    DesiredUnit,
    DropIn,
    FileContent,
)


def _file(path, permissions=0o644):
    return DesiredFile(path=path, content=FileContent(data="x"), permissions=permissions)


class TestConfigValidator:
    """Tests for the ConfigValidator."""

    def test_valid_config(self):
        """A well-formed configuration passes without warnings."""
        desired = DesiredConfig(
            files=[_file("/etc/foo.conf")],
            units=[DesiredUnit(
                name="foo.service",
                content="[Service]\n",
                drop_ins=[DropIn(name="10-a.conf", content="")],
            )],
        )

        result = ConfigValidator().validate(desired)

        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_relative_path(self):
        result = ConfigValidator().validate(DesiredConfig(files=[_file("etc/foo")]))

        assert not result.valid
        assert "must be absolute" in result.errors[0]

    def test_unnormalized_path(self):
        result = ConfigValidator().validate(DesiredConfig(files=[_file("/etc/../foo")]))

        assert not result.valid
        assert "not normalized" in result.errors[0]

    def test_duplicate_file(self):
        desired = DesiredConfig(files=[_file("/etc/foo"), _file("/etc/foo")])

        result = ConfigValidator().validate(desired)

        assert not result.valid
        assert "more than once" in result.errors[0]

    def test_permissions_out_of_range(self):
        result = ConfigValidator().validate(DesiredConfig(files=[_file("/a", 0o17777)]))

        assert not result.valid
        assert "Invalid permissions" in result.errors[0]

    def test_file_without_content_warns(self):
        result = ConfigValidator().validate(DesiredConfig(files=[DesiredFile(path="/a")]))

        assert result.valid
        assert "no inline content" in result.warnings[0]

    def test_unit_name_with_slash(self):
        desired = DesiredConfig(units=[DesiredUnit(name="../evil.service")])

        result = ConfigValidator().validate(desired)

        assert not result.valid
        assert "Invalid unit name" in result.errors[0]

    def test_duplicate_unit(self):
        desired = DesiredConfig(units=[DesiredUnit(name="a.service"), DesiredUnit(name="a.service")])

        result = ConfigValidator().validate(desired)

        assert not result.valid

    def test_unknown_unit_suffix_warns(self):
        result = ConfigValidator().validate(DesiredConfig(units=[DesiredUnit(name="foo")]))

        assert result.valid
        assert "unknown unit type" in result.warnings[0]

    def test_duplicate_drop_in(self):
        unit = DesiredUnit(
            name="a.service",
            drop_ins=[DropIn(name="x.conf", content=""), DropIn(name="x.conf", content="")],
        )

        result = ConfigValidator().validate(DesiredConfig(units=[unit]))

        assert not result.valid
        assert "Drop-in x.conf" in result.errors[0]

    def test_drop_in_without_conf_suffix_warns(self):
        unit = DesiredUnit(name="a.service", drop_ins=[DropIn(name="override", content="")])

        result = ConfigValidator().validate(DesiredConfig(units=[unit]))

        assert result.valid
        assert "does not end in .conf" in result.warnings[0]
