"""Tests for manifest validation and CompositionPlan construction."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from stackcomposer.errors import ManifestError, MissingParameterError
from stackcomposer.manifest import load_manifest, parse_manifest
from stackcomposer.models.remote import RemoteScope, ResolutionState
from stackcomposer.models.resources import NodeAttributeRef, RemoteValueRef, ResourceKind
from stackcomposer.parameters import ParameterSource, ResolvedParameter


def _document(**overrides: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "stackName": "vams",
        "parameters": {"adminEmailAddress": {"env": "VAMS_ADMIN_EMAIL", "context": "adminEmailAddress"}},
        "remoteReferences": [{"id": "wafAcl", "region": "us-east-1", "name": "/vams/waf/webAclArn"}],
        "resources": [
            {
                "name": "cdn",
                "kind": "content-distribution",
                "properties": {"acl": {"remote": "wafAcl"}, "origins": [{"domain": {"ref": "web.domain"}}]},
                "dependsOn": ["api"],
            },
            {"name": "web", "kind": "storage", "properties": {"domain": "web.s3.amazonaws.com"}},
            {
                "name": "identity",
                "kind": "identity-provider",
                "properties": {"adminEmail": {"param": "adminEmailAddress"}},
            },
            {"name": "api", "kind": "api-endpoint", "properties": {"url": "https://api.example.com"}},
        ],
        "routing": [
            {"distribution": "cdn", "webAcl": "wafAcl", "routes": [{"pathPrefix": "/api", "target": "api"}]}
        ],
        "suppressions": [
            {"path": "/vams/cdn", "ruleId": "AwsSolutions-CFR4", "reason": "Default cert.", "applyToChildren": True}
        ],
    }
    doc.update(overrides)
    return doc


def _params(**values: str) -> dict[str, ResolvedParameter]:
    return {name: ResolvedParameter(name, value, ParameterSource.OVERRIDE) for name, value in values.items()}


class TestParse:
    def test_parameter_specs(self) -> None:
        (spec,) = parse_manifest(_document()).parameter_specs()
        assert spec.name == "adminEmailAddress"
        assert spec.env == "VAMS_ADMIN_EMAIL"
        assert spec.required

    def test_unknown_kind_rejected_with_location(self) -> None:
        doc = _document(resources=[{"name": "x", "kind": "database"}])
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest(doc)
        assert exc_info.value.location == "resources.0.kind"

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ManifestError):
            parse_manifest(_document(outputs={}))

    def test_no_resources_rejected(self) -> None:
        with pytest.raises(ManifestError):
            parse_manifest(_document(resources=[]))

    def test_route_priority_must_be_positive(self) -> None:
        routing = [{"distribution": "cdn", "routes": [{"pathPrefix": "/api", "target": "api", "priority": 0}]}]
        with pytest.raises(ManifestError):
            parse_manifest(_document(routing=routing))


class TestBuild:
    def test_builds_specs_with_markers(self) -> None:
        plan = parse_manifest(_document()).build(_params(adminEmailAddress="admin@example.com"))
        specs = {spec.name: spec for spec in plan.specs}
        assert [spec.name for spec in plan.specs] == ["cdn", "web", "identity", "api"]
        assert specs["cdn"].kind is ResourceKind.CONTENT_DISTRIBUTION
        assert specs["cdn"].depends_on == ("api",)
        assert specs["cdn"].properties["acl"] == RemoteValueRef("wafAcl")
        assert specs["cdn"].properties["origins"] == [{"domain": NodeAttributeRef("web", "domain")}]
        assert specs["identity"].properties["adminEmail"] == "admin@example.com"

    def test_remote_table_fresh_and_pending(self) -> None:
        manifest = parse_manifest(_document())
        first = manifest.build(_params(adminEmailAddress="a@example.com"))
        second = manifest.build(_params(adminEmailAddress="a@example.com"))
        assert first.remote_refs is not second.remote_refs
        ref = first.remote_refs["wafAcl"]
        assert ref.scope == RemoteScope("us-east-1")
        assert ref.state is ResolutionState.PENDING

    def test_directives(self) -> None:
        plan = parse_manifest(_document()).build(_params(adminEmailAddress="a@example.com"))
        (route,) = plan.routes
        assert (route.distribution, route.target, route.path_prefix, route.priority) == ("cdn", "api", "/api", 1)
        (acl,) = plan.web_acls
        assert (acl.distribution, acl.reference) == ("cdn", "wafAcl")
        (suppression,) = plan.suppressions
        assert suppression.apply_to_children
        assert suppression.justification == "Default cert."

    def test_stack_name_override(self) -> None:
        plan = parse_manifest(_document()).build(_params(adminEmailAddress="a"), stack_name="vams-prod")
        assert plan.stack_name == "vams-prod"

    def test_missing_parameter(self) -> None:
        with pytest.raises(MissingParameterError) as exc_info:
            parse_manifest(_document()).build({})
        assert exc_info.value.identifier == "adminEmailAddress"

    def test_malformed_ref_marker(self) -> None:
        doc = _document(resources=[{"name": "api", "kind": "api-endpoint", "properties": {"url": {"ref": "identity"}}}])
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest(doc).build(_params(adminEmailAddress="a"))
        assert exc_info.value.location == "resources[0].properties.url"

    def test_unknown_web_acl_reference(self) -> None:
        doc = _document(routing=[{"distribution": "cdn", "webAcl": "nope"}])
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest(doc).build(_params(adminEmailAddress="a"))
        assert exc_info.value.location == "routing[0].webAcl"

    def test_multi_key_object_is_plain_value(self) -> None:
        doc = _document(
            resources=[{"name": "api", "kind": "api-endpoint", "properties": {"cors": {"ref": "x", "other": 1}}}]
        )
        plan = parse_manifest(doc).build(_params(adminEmailAddress="a"))
        assert plan.specs[0].properties["cors"] == {"ref": "x", "other": 1}


class TestLoadManifest:
    def test_loads_file(self, tmp_path: Path) -> None:
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps(_document()), encoding="utf-8")
        assert load_manifest(path).stack_name == "vams"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError):
            load_manifest(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "manifest.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ManifestError) as exc_info:
            load_manifest(path)
        assert exc_info.value.location.startswith(str(path))

    def test_non_object_document(self, tmp_path: Path) -> None:
        path = tmp_path / "manifest.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ManifestError):
            load_manifest(path)
