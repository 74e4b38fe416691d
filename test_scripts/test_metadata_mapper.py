"""Tests for metadata CSV handling and metadata updates."""
import pytest

from errors import (
    DuplicateFieldError,
    MetadataParseError,
    RequestRejectedError,
    UnknownFieldError,
)
from metadata_mapper import (
    delete_metadata,
    format_metadata,
    load_metadata_file,
    parse_metadata,
    register_text_field,
    upload_metadata,
)
from models.unity import AssetIdentity

from conftest import FakeResponse

VERSION = "/assets/v1/projects/proj-1/assets/a1/versions/1"
FIELDS = "/assets/v1/organizations/org-1/templates/fields"


@pytest.fixture
def identity():
    return AssetIdentity(id="a1", version="1")


class TestParseMetadata:
    def test_parses_rows_in_order(self):
        records = parse_metadata("Name,Value\nMaterial,TPU\nVendor,Non\n")
        assert records == {"Material": "TPU", "Vendor": "Non"}
        assert list(records) == ["Material", "Vendor"]

    def test_header_is_case_insensitive_and_trimmed(self):
        assert parse_metadata(" name , VALUE \nColor, red\n") == {"Color": "red"}

    def test_blank_lines_are_skipped(self):
        assert parse_metadata("Name,Value\n\nA,1\n\n") == {"A": "1"}

    def test_quoted_values_keep_commas(self):
        assert parse_metadata('Name,Value\nSize,"10, 20, 30"\n') == {"Size": "10, 20, 30"}

    def test_missing_header(self):
        with pytest.raises(MetadataParseError) as exc_info:
            parse_metadata("Material,TPU\n")
        assert exc_info.value.line == 1

    def test_empty_text(self):
        with pytest.raises(MetadataParseError):
            parse_metadata("")

    def test_wrong_column_count_reports_line(self):
        with pytest.raises(MetadataParseError) as exc_info:
            parse_metadata("Name,Value\nA,1\nB,2,3\n")
        assert exc_info.value.line == 3
        assert "line 3" in str(exc_info.value)

    def test_whitespace_only_lines_are_skipped(self):
        assert parse_metadata("Name,Value\n   \nA,1\n") == {"A": "1"}

    def test_separator_only_row_is_malformed(self):
        with pytest.raises(MetadataParseError) as exc_info:
            parse_metadata("Name,Value\nA,1\n,,,\nB,2\n")
        assert exc_info.value.line == 3

    def test_single_separator_row_has_empty_name(self):
        with pytest.raises(MetadataParseError) as exc_info:
            parse_metadata("Name,Value\n,\n")
        assert exc_info.value.line == 2
        assert "empty field name" in str(exc_info.value)

    def test_duplicate_name(self):
        with pytest.raises(DuplicateFieldError) as exc_info:
            parse_metadata("Name,Value\nA,1\nA,2\n")
        assert exc_info.value.name == "A"
        assert exc_info.value.exit_code == 2


class TestFormatMetadata:
    def test_round_trip(self):
        records = {"Material": "TPU", "Size": "10, 20", "Note": 'say "hi"'}
        assert parse_metadata(format_metadata(records)) == records

    def test_header_first(self):
        assert format_metadata({"A": "1"}) == "Name,Value\nA,1\n"

    def test_surrounding_whitespace_is_not_preserved(self):
        assert parse_metadata(format_metadata({"A": " padded "})) == {"A": "padded"}


class TestLoadMetadataFile:
    def test_reads_file_with_bom(self, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_bytes("\ufeffName,Value\nMaterial,TPU\n".encode("utf-8"))
        assert load_metadata_file(path) == {"Material": "TPU"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(MetadataParseError):
            load_metadata_file(tmp_path / "none.csv")


class TestUploadMetadata:
    def test_sends_single_update(self, client, http, identity):
        http.add("PATCH", VERSION, FakeResponse(200))

        upload_metadata(client, identity, {"Material": "TPU", "Vendor": "Non"})

        assert len(http.calls) == 1
        assert http.calls[0]["json"] == {"metadata": {"Material": "TPU", "Vendor": "Non"}}

    def test_duplicate_file_sends_nothing(self, client, http, identity, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_text("Name,Value\nA,1\nA,2\n")

        with pytest.raises(DuplicateFieldError):
            upload_metadata(client, identity, load_metadata_file(path))

        assert http.calls == []

    def test_unknown_field_is_named(self, client, http, identity):
        http.add(
            "PATCH", VERSION,
            FakeResponse(400, {"title": "Bad Request", "detail": "Field 'Vendor' does not exist"}),
        )

        with pytest.raises(UnknownFieldError) as exc_info:
            upload_metadata(client, identity, {"Material": "TPU", "Vendor": "Non"})

        assert exc_info.value.name == "Vendor"
        assert exc_info.value.exit_code == 3

    def test_other_rejections_propagate(self, client, http, identity):
        http.add("PATCH", VERSION, FakeResponse(400, {"detail": "payload too large"}))
        with pytest.raises(RequestRejectedError):
            upload_metadata(client, identity, {"Material": "TPU"})

    def test_field_name_inside_other_words_is_not_matched(self, client, http, identity):
        http.add("PATCH", VERSION, FakeResponse(400, {"detail": "payload too large"}))
        with pytest.raises(RequestRejectedError):
            upload_metadata(client, identity, {"a": "1", "large_file": "yes"})

    def test_error_body_keys_are_not_matched(self, client, http, identity):
        http.add(
            "PATCH", VERSION,
            FakeResponse(400, {"status": 400, "detail": "Request body too large"}),
        )
        with pytest.raises(RequestRejectedError):
            upload_metadata(client, identity, {"status": "done"})

    def test_nested_error_messages_are_searched(self, client, http, identity):
        http.add(
            "PATCH", VERSION,
            FakeResponse(404, {"errors": [{"code": "E1", "message": "Unknown field: Vendor"}]}),
        )
        with pytest.raises(UnknownFieldError) as exc_info:
            upload_metadata(client, identity, {"Material": "TPU", "Vendor": "Non"})
        assert exc_info.value.name == "Vendor"

    def test_empty_mapping_sends_nothing(self, client, http, identity):
        upload_metadata(client, identity, {})
        assert http.calls == []


class TestDeleteMetadata:
    def test_deletes_listed_keys(self, client, http, identity):
        http.add("DELETE", VERSION + "/metadata", FakeResponse(204))

        deleted = delete_metadata(client, identity, ["Material", " Vendor ", ""])

        assert deleted == ["Material", "Vendor"]
        assert http.calls[0]["params"] == {"keys": ["Material", "Vendor"]}


class TestRegisterTextField:
    def test_registers_missing_field(self, client, http):
        http.add("GET", FIELDS + "/Material", FakeResponse(404))
        http.add("POST", FIELDS, FakeResponse(200))

        definition = register_text_field(client, "Material")

        assert definition.type == "text"
        assert http.calls_to("POST")[0]["json"] == {
            "name": "Material",
            "type": "text",
            "displayName": "Material",
        }

    def test_existing_field_is_not_registered_again(self, client, http):
        http.add("GET", FIELDS + "/Material", FakeResponse(200, {"name": "Material", "type": "text"}))

        definition = register_text_field(client, "Material")

        assert definition.name == "Material"
        assert http.calls_to("POST") == []
