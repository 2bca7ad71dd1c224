"""Shared fixtures for stackcomposer integration tests.

Provides a realistic web application manifest (storage, identity, API,
content distribution with a WAF ACL from us-east-1, runtime config
publisher) plus an in-memory parameter store, so whole composition passes
run without touching AWS.
"""

from __future__ import annotations

from typing import Any

import pytest

from stackcomposer.manifest import CompositionPlan, Manifest, parse_manifest
from stackcomposer.models.artifact import ConfigArtifact
from stackcomposer.models.remote import RemoteScope
from stackcomposer.parameters import resolve_parameters
from stackcomposer.publishing.base import ConfigPublisher
from stackcomposer.remote import InMemoryParameterStore, RemoteReferenceResolver

WAF_SCOPE = RemoteScope("us-east-1")
WAF_PARAMETER = "/vams/waf/webAclArn"
WAF_ACL_ARN = "arn:aws:wafv2:us-east-1:123456789012:global/webacl/demo/a1b2c3"


# ---------------------------------------------------------------------------
# Manifest factory helpers
# ---------------------------------------------------------------------------


def make_document(**overrides: Any) -> dict[str, Any]:
    """Return the reference deployment document; top-level keys may be replaced."""
    doc: dict[str, Any] = {
        "stackName": "vams",
        "parameters": {
            "adminEmailAddress": {"env": "VAMS_ADMIN_EMAIL", "context": "adminEmailAddress"},
            "stage": {"context": "stage", "default": "dev", "required": False},
        },
        "remoteReferences": [{"id": "wafAcl", "region": "us-east-1", "name": WAF_PARAMETER}],
        "resources": [
            {
                "name": "cdn",
                "kind": "content-distribution",
                "properties": {"originDomain": {"ref": "webAppBucket.bucketDomain"}, "webAclArn": {"remote": "wafAcl"}},
                "dependsOn": ["api"],
            },
            {
                "name": "webAppBucket",
                "kind": "storage",
                "properties": {
                    "role": "web",
                    "bucketName": "vams-web-app",
                    "bucketDomain": "vams-web-app.s3.amazonaws.com",
                },
            },
            {"name": "assetBucket", "kind": "storage", "properties": {"role": "assets", "bucketName": "vams-assets"}},
            {
                "name": "artefactsBucket",
                "kind": "storage",
                "properties": {"role": "artifacts", "bucketName": "vams-artefacts"},
            },
            {"name": "accessLogs", "kind": "audit-sink", "properties": {"bucketName": "vams-access-logs"}},
            {
                "name": "identity",
                "kind": "identity-provider",
                "properties": {
                    "poolId": "us-west-2_AbCdEfGhI",
                    "clientId": "4l2k3j4h5g6f7d8s9a0q1w2e3r",
                    "adminEmail": {"param": "adminEmailAddress"},
                },
            },
            {
                "name": "api",
                "kind": "api-endpoint",
                "properties": {
                    "url": "https://abc123.execute-api.us-west-2.amazonaws.com/",
                    "stage": {"param": "stage"},
                    "authorizerPool": {"ref": "identity.poolId"},
                },
                "dependsOn": ["accessLogs"],
            },
            {
                "name": "runtimeConfig",
                "kind": "config-publisher",
                "properties": {"bucketName": {"ref": "webAppBucket.bucketName"}, "key": "config.json"},
                "dependsOn": ["cdn"],
            },
        ],
        "routing": [
            {"distribution": "cdn", "webAcl": "wafAcl", "routes": [{"pathPrefix": "/api", "target": "api"}]}
        ],
        "suppressions": [
            {
                "path": "/vams/cdn",
                "ruleId": "AwsSolutions-CFR4",
                "reason": "Default CloudFront certificate accepted.",
                "applyToChildren": True,
            },
            {"path": "/vams/*Bucket", "ruleId": "AwsSolutions-S1", "reason": "Logs go to accessLogs."},
        ],
    }
    doc.update(overrides)
    return doc


def make_plan(manifest: Manifest, **context: str) -> CompositionPlan:
    """Resolve parameters from *context* (plus a fixed admin e-mail) and build a plan."""
    params = resolve_parameters(
        manifest.parameter_specs(),
        context={"adminEmailAddress": "admin@example.com", **context},
        environ={},
    )
    return manifest.build(params)


class RecordingPublisher(ConfigPublisher):
    """Publisher that keeps every artifact it receives."""

    def __init__(self) -> None:
        self.published: list[ConfigArtifact] = []

    @property
    def publisher_name(self) -> str:
        return "recording"

    @property
    def target(self) -> str:
        return "memory://"

    async def publish(self, artifact: ConfigArtifact) -> None:
        self.published.append(artifact)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def manifest() -> Manifest:
    return parse_manifest(make_document())


@pytest.fixture
def store() -> InMemoryParameterStore:
    return InMemoryParameterStore({(WAF_SCOPE, WAF_PARAMETER): WAF_ACL_ARN})


@pytest.fixture
def resolver(store: InMemoryParameterStore) -> RemoteReferenceResolver:
    return RemoteReferenceResolver(store, timeout_seconds=1.0)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()
