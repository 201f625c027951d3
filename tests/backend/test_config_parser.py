"""
Unit tests for ConfigDocumentParser.

Tests cover:
- Profile extraction (names, protocols, parameters)
- Duplicate names (last wins, strict mode)
- Structural errors (missing attributes, orphan params, nesting)
- Root attributes: delete flag and valid_to layouts
- Malformed and hostile XML
"""
import io
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from userfiles_auth.core.config_parser import (
    ConfigDocumentParser,
    ParserState,
    parse_config_file,
    parse_delete_flag,
    parse_valid_to,
)
from userfiles_auth.core.errors import (
    ConfigFileNotFoundError,
    ConfigReadError,
    DuplicateProfileError,
    MissingAttributeError,
    NestedConfigError,
    OrphanParameterError,
    XmlSyntaxError,
)


def parse(document: str, **kwargs):
    return ConfigDocumentParser(**kwargs).parse(io.BytesIO(document.encode("utf-8")))


class TestProfiles:
    """Test profile extraction from well-formed documents."""

    def test_end_to_end_sample(self) -> None:
        result = parse(
            """
            <configs valid_to="2099-01-01T00:00:00Z">
              <config name="srv1" protocol="rdp">
                <param name="hostname" value="10.0.0.1"/>
                <param name="port" value="3389"/>
              </config>
            </configs>
            """
        )
        assert list(result.profiles) == ["srv1"]
        profile = result.profiles["srv1"]
        assert profile.protocol == "rdp"
        assert dict(profile.parameters) == {"hostname": "10.0.0.1", "port": "3389"}
        assert result.delete_after_read is False
        assert result.valid_to.year == 2099
        assert not result.is_expired(datetime.now(timezone.utc))

    def test_many_profiles_keyed_by_name(self) -> None:
        configs = "".join(
            f'<config name="srv{i}" protocol="vnc"><param name="port" value="{5900 + i}"/></config>'
            for i in range(5)
        )
        result = parse(f"<configs>{configs}</configs>")
        assert len(result.profiles) == 5
        for i in range(5):
            assert result.profiles[f"srv{i}"].protocol == "vnc"
            assert result.profiles[f"srv{i}"].parameters == {"port": str(5900 + i)}

    def test_empty_document(self) -> None:
        result = parse("<configs></configs>")
        assert len(result.profiles) == 0
        assert result.valid_to is None
        assert result.delete_after_read is False

    def test_profile_without_params(self) -> None:
        result = parse('<configs><config name="bare" protocol="ssh"/></configs>')
        assert result.profiles["bare"].protocol == "ssh"
        assert len(result.profiles["bare"].parameters) == 0

    def test_empty_value_kept(self) -> None:
        result = parse('<configs><config name="a" protocol="rdp"><param name="password" value=""/></config></configs>')
        assert result.profiles["a"].parameters == {"password": ""}

    def test_missing_value_stored_as_empty(self) -> None:
        result = parse('<configs><config name="a" protocol="rdp"><param name="ignore-cert"/></config></configs>')
        assert result.profiles["a"].parameters == {"ignore-cert": ""}

    def test_param_without_name_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            result = parse('<configs><config name="a" protocol="rdp"><param value="x"/></config></configs>')
        assert len(result.profiles["a"].parameters) == 0
        assert "param without name" in caplog.text

    def test_values_read_verbatim(self) -> None:
        result = parse(
            '<configs><config name="a" protocol="rdp">'
            '<param name="username" value="${GUAC_USERNAME}"/>'
            '<param name="domain" value="  CORP &amp; co "/>'
            "</config></configs>"
        )
        assert result.profiles["a"].parameters["username"] == "${GUAC_USERNAME}"
        assert result.profiles["a"].parameters["domain"] == "  CORP & co "

    def test_unknown_elements_ignored(self) -> None:
        result = parse(
            '<configs><comment>x</comment><config name="a" protocol="rdp">'
            '<note/><param name="k" value="v"/></config></configs>'
        )
        assert result.profiles["a"].parameters == {"k": "v"}

    def test_namespaced_elements_matched_by_local_name(self) -> None:
        result = parse(
            '<c:configs xmlns:c="urn:test" delete="yes">'
            '<c:config name="a" protocol="rdp"><c:param name="k" value="v"/></c:config>'
            "</c:configs>"
        )
        assert result.profiles["a"].parameters == {"k": "v"}
        assert result.delete_after_read is True

    def test_result_mapping_is_read_only(self) -> None:
        result = parse('<configs><config name="a" protocol="rdp"><param name="k" value="v"/></config></configs>')
        with pytest.raises(TypeError):
            result.profiles["b"] = result.profiles["a"]
        with pytest.raises(TypeError):
            result.profiles["a"].parameters["k"] = "changed"

    def test_parser_reusable_without_leaking_state(self) -> None:
        parser = ConfigDocumentParser()
        first = parser.parse(io.BytesIO(b'<configs delete="1"><config name="a" protocol="rdp"/></configs>'))
        second = parser.parse(io.BytesIO(b'<configs><config name="b" protocol="vnc"/></configs>'))
        assert list(first.profiles) == ["a"]
        assert list(second.profiles) == ["b"]
        assert second.delete_after_read is False
        assert parser.state is ParserState.IDLE


class TestDuplicateNames:
    """Test handling of repeated config names."""

    DOCUMENT = """
    <configs>
      <config name="dup" protocol="rdp"><param name="hostname" value="first"/></config>
      <config name="dup" protocol="vnc"><param name="port" value="5901"/></config>
    </configs>
    """

    def test_last_occurrence_wins(self) -> None:
        result = parse(self.DOCUMENT)
        assert len(result.profiles) == 1
        assert result.profiles["dup"].protocol == "vnc"
        assert result.profiles["dup"].parameters == {"port": "5901"}

    def test_strict_mode_rejects_duplicates(self) -> None:
        with pytest.raises(DuplicateProfileError) as exc_info:
            parse(self.DOCUMENT, strict_duplicates=True)
        assert exc_info.value.name == "dup"


class TestStructuralErrors:
    """Test documents violating the element structure."""

    def test_missing_name(self) -> None:
        with pytest.raises(MissingAttributeError, match="must have a name") as exc_info:
            parse('<configs><config protocol="rdp"/></configs>')
        assert exc_info.value.attribute == "name"

    def test_missing_protocol(self) -> None:
        with pytest.raises(MissingAttributeError, match="must have a protocol") as exc_info:
            parse('<configs><config name="a"/></configs>')
        assert exc_info.value.attribute == "protocol"

    def test_missing_both_reports_name_first(self) -> None:
        with pytest.raises(MissingAttributeError) as exc_info:
            parse("<configs><config/></configs>")
        assert exc_info.value.attribute == "name"

    def test_missing_attribute_after_valid_profile_fails_whole_parse(self) -> None:
        with pytest.raises(MissingAttributeError):
            parse('<configs><config name="ok" protocol="rdp"/><config name="bad"/></configs>')

    def test_orphan_param(self) -> None:
        with pytest.raises(OrphanParameterError, match="without corresponding configuration"):
            parse('<configs><param name="k" value="v"/></configs>')

    def test_param_after_config_closed(self) -> None:
        with pytest.raises(OrphanParameterError):
            parse('<configs><config name="a" protocol="rdp"/><param name="k" value="v"/></configs>')

    def test_nested_config(self) -> None:
        with pytest.raises(NestedConfigError, match="cannot be nested"):
            parse(
                '<configs><config name="outer" protocol="rdp">'
                '<config name="inner" protocol="vnc"/></config></configs>'
            )


class TestMalformedDocuments:
    """Test malformed markup and forbidden XML constructs."""

    def test_unclosed_element(self) -> None:
        with pytest.raises(XmlSyntaxError):
            parse('<configs><config name="a" protocol="rdp"></configs>')

    def test_empty_input(self) -> None:
        with pytest.raises(XmlSyntaxError):
            parse("")

    def test_not_xml(self) -> None:
        with pytest.raises(XmlSyntaxError):
            parse("hostname=10.0.0.1")

    def test_doctype_forbidden(self) -> None:
        with pytest.raises(XmlSyntaxError):
            parse('<!DOCTYPE configs [<!ENTITY x "y">]><configs/>')

    def test_external_entity_forbidden(self) -> None:
        with pytest.raises(XmlSyntaxError):
            parse(
                '<!DOCTYPE configs [<!ENTITY xxe SYSTEM "file:///etc/passwd">]>'
                '<configs><config name="a" protocol="rdp"><param name="k" value="&xxe;"/></config></configs>'
            )

    def test_stream_failure(self) -> None:
        class BrokenStream(io.RawIOBase):
            def readable(self) -> bool:
                return True

            def read(self, size: int = -1) -> bytes:
                raise OSError("device error")

        with pytest.raises(ConfigReadError, match="device error"):
            ConfigDocumentParser().parse(BrokenStream())


class TestDeleteFlag:
    """Test the delete root attribute."""

    @pytest.mark.parametrize("value", ["yes", "YES", "Yes", "true", "TRUE", "True", "1"])
    def test_true_values(self, value: str) -> None:
        assert parse(f'<configs delete="{value}"/>').delete_after_read is True

    @pytest.mark.parametrize("value", ["no", "false", "0", "", "y", " yes"])
    def test_false_values(self, value: str) -> None:
        assert parse(f'<configs delete="{value}"/>').delete_after_read is False

    def test_absent(self) -> None:
        assert parse("<configs/>").delete_after_read is False

    def test_helper_handles_none(self) -> None:
        assert parse_delete_flag(None) is False

    def test_only_first_root_read(self) -> None:
        result = parse('<configs><config name="a" protocol="rdp"><configs delete="yes"/></config></configs>')
        assert result.delete_after_read is False
        assert "a" in result.profiles


class TestValidTo:
    """Test valid_to parsing across accepted layouts."""

    INSTANT = datetime(2024, 1, 2, 1, 4, 5, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "value",
        [
            "2024-01-02T03:04:05.000+02:00",
            "2024-01-02T03:04:05.000+0200",
            "2024-01-02T01:04:05.000Z",
            "2024-01-02T03:04:05+02:00",
            "2024-01-02T03:04:05+0200",
            "2024-01-02T01:04:05Z",
            "2024-01-01T23:34:05-01:30",
        ],
    )
    def test_zoned_layouts_agree(self, value: str) -> None:
        assert parse_valid_to(value) == self.INSTANT

    def test_fractional_seconds(self) -> None:
        parsed = parse_valid_to("2024-01-02T03:04:05.678+02:00")
        assert parsed == self.INSTANT + timedelta(milliseconds=678)

    def test_local_layouts_use_local_time(self) -> None:
        expected = datetime(2024, 1, 2, 3, 4, 5).astimezone()
        assert parse_valid_to("2024-01-02T03:04:05") == expected
        assert parse_valid_to("2024-01-02T03:04:05.000") == expected

    def test_result_is_timezone_aware(self) -> None:
        for value in ("2024-01-02T03:04:05", "2024-01-02T03:04:05Z"):
            assert parse_valid_to(value).tzinfo is not None

    @pytest.mark.parametrize(
        "value",
        ["tomorrow", "2024-01-02", "2024-01-02 03:04:05", "2024-13-02T03:04:05", "2024-01-02T03:04:05+2"],
    )
    def test_invalid_values_raise(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_valid_to(value)

    def test_unparseable_value_is_not_fatal(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            result = parse('<configs valid_to="next week"><config name="a" protocol="rdp"/></configs>')
        assert result.valid_to is None
        assert "a" in result.profiles
        assert "CONFIG_PARSER: Invalid \"valid_to\" = \"next week\"" in caplog.text

    def test_past_valid_to_still_parses(self) -> None:
        result = parse('<configs valid_to="2000-01-01T00:00:00Z"><config name="a" protocol="rdp"/></configs>')
        assert "a" in result.profiles
        assert result.is_expired(datetime.now(timezone.utc))


class TestParseFile:
    """Test parsing from disk."""

    def test_parse_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "noauth-config.xml"
        path.write_text('<configs><config name="a" protocol="rdp"/></configs>', encoding="utf-8")
        assert "a" in parse_config_file(path).profiles

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            parse_config_file(tmp_path / "missing.xml")
        assert exc_info.value.path == tmp_path / "missing.xml"

    def test_directory_is_read_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigReadError):
            parse_config_file(tmp_path)

    def test_syntax_error_carries_path(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.xml"
        path.write_text("<configs>", encoding="utf-8")
        with pytest.raises(XmlSyntaxError) as exc_info:
            parse_config_file(path)
        assert exc_info.value.path == path
