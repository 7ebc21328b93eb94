"""Parameter extraction from section documents."""

from __future__ import annotations

import pytest

from MDMSpec.SectionHierarchy.models import Parameter, Section
from MDMSpec.SectionHierarchy.parameters import (
    extract_parameters,
    extract_payload_metadata,
    normalize_parameter_type,
)
from MDMSpec.SpecCache.fallback import fallback_document

PROPERTIES_DOC = {
    "metadata": {
        "title": "CalDAV",
        "symbolKind": "dictionary",
        "platforms": [{"name": "iOS"}, {"name": "macOS"}],
    },
    "abstract": [{"type": "text", "text": "The payload you use to configure a CalDAV account."}],
    "primaryContentSections": [
        {"kind": "content", "content": []},
        {
            "kind": "properties",
            "items": [
                {
                    "name": "CalDAVHostName",
                    "type": [{"kind": "text", "text": "string"}],
                    "required": True,
                    "content": [
                        {
                            "type": "paragraph",
                            "inlineContent": [
                                {"type": "text", "text": "The server address, for example"},
                                {"type": "codeVoice", "code": "cal.example.com"},
                            ],
                        }
                    ],
                },
                {
                    "name": "CalDAVUseSSL",
                    "type": [{"kind": "text", "text": "boolean"}],
                    "attributes": [{"kind": "default", "value": "true"}],
                    "introducedVersion": "10.7",
                },
                {"name": "CalDAVPort", "type": [{"kind": "text", "text": "integer"}]},
                {"type": [{"kind": "text", "text": "string"}]},
                "junk",
            ],
        },
    ],
}


class TestExtractParameters:
    def test_properties_section(self) -> None:
        parameters = extract_parameters(PROPERTIES_DOC, platforms=["iOS"])

        assert [p.key for p in parameters] == ["CalDAVHostName", "CalDAVUseSSL", "CalDAVPort"]
        host, ssl, port = parameters
        assert host.required is True
        assert host.type == "string"
        assert host.description == "The server address, for example `cal.example.com`"
        assert ssl.type == "boolean"
        assert ssl.default_value == "true"
        assert ssl.introduced_version == "10.7"
        assert port.type == "number"
        assert port.platforms == ("iOS",)

    def test_declarations_section(self) -> None:
        document = {
            "primaryContentSections": [
                {
                    "kind": "declarations",
                    "declarations": [
                        {
                            "names": ["ServerURL"],
                            "type": [{"text": "string"}],
                            "attributes": [{"value": "https://example.test"}],
                            "content": [{"inlineContent": [{"text": "Server location"}]}],
                        }
                    ],
                }
            ]
        }
        (parameter,) = extract_parameters(document)
        assert parameter.key == "ServerURL"
        assert parameter.default_value == "https://example.test"
        assert parameter.description == "Server location"

    def test_topic_references_fallback(self) -> None:
        parameters = extract_parameters(fallback_document("wifi"))

        assert [p.name for p in parameters] == [
            "SSID_STR",
            "Password",
            "EncryptionType",
            "IsHiddenNetwork",
        ]
        assert parameters[0].required is True
        assert parameters[2].possible_values == ("None", "WEP", "WPA", "WPA2", "WPA3")
        assert parameters[3].type == "boolean"

    @pytest.mark.parametrize("document", [None, [], "text", {}, {"topicSections": [], "references": {}}])
    def test_unusable_documents(self, document: object) -> None:
        assert extract_parameters(document) == []

    @pytest.mark.parametrize(
        "document",
        [
            {"primaryContentSections": 7},
            {"primaryContentSections": [{"kind": "properties", "items": 3}]},
            {"primaryContentSections": [{"kind": "declarations", "declarations": True}]},
            {"primaryContentSections": [{"kind": "declarations", "declarations": [{"names": {"a": 1}}]}]},
            {"primaryContentSections": [{"kind": "properties", "items": [{"name": "A", "type": 5, "attributes": 1, "content": {"x": 1}}]}]},
            {"topicSections": 5, "references": {}},
            {"topicSections": [{"identifiers": 9}], "references": {}},
            {"topicSections": [{"identifiers": ["a"]}], "references": {"a": {"title": "A", "abstract": 4}}},
        ],
    )
    def test_malformed_shapes_do_not_raise(self, document: object) -> None:
        parameters = extract_parameters(document)
        assert all(isinstance(p, Parameter) for p in parameters)

    def test_scalar_item_fields_fall_back_to_defaults(self) -> None:
        document = {
            "primaryContentSections": [
                {"kind": "properties", "items": [{"name": "A", "type": 5, "attributes": 1, "content": 2}]}
            ]
        }
        (parameter,) = extract_parameters(document)
        assert parameter.type == "string"
        assert parameter.default_value is None
        assert parameter.description == ""

    def test_with_parameters_returns_new_section(self) -> None:
        section = Section(identifier="caldav", name="CalDAV")
        populated = section.with_parameters(extract_parameters(PROPERTIES_DOC))

        assert section.parameters == ()
        assert len(populated.parameters) == 3
        assert all(isinstance(p, Parameter) for p in populated.parameters)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Boolean", "boolean"),
        ("integer", "number"),
        ("dictionary", "object"),
        ("[string]", "array"),
        ("data", "string"),
        (None, "string"),
    ],
)
def test_normalize_parameter_type(raw, expected) -> None:
    assert normalize_parameter_type(raw) == expected


def test_payload_metadata_with_scalar_platforms() -> None:
    metadata = extract_payload_metadata({"metadata": {"title": "X", "platforms": 3}, "platforms": True})
    assert metadata.title == "X"
    assert metadata.platforms == ()


def test_payload_metadata() -> None:
    metadata = extract_payload_metadata(PROPERTIES_DOC)
    assert metadata.title == "CalDAV"
    assert metadata.symbol_kind == "dictionary"
    assert metadata.platforms == ("iOS", "macOS")
    assert metadata.abstract.startswith("The payload you use")
