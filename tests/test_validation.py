"""Unit tests for validation.py - Manifest and hub schema validation."""

from validation import (
    MANIFEST_SCHEMA,
    validate_against_schema,
    validate_hub,
    validate_manifest,
)


class TestValidateManifest:
    """Tests for validate_manifest function."""

    def test_valid_manifest(self, sample_deployment):
        is_valid, error = validate_manifest(sample_deployment)
        assert is_valid is True
        assert error is None

    def test_cluster_scoped_manifest(self):
        manifest = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "a"}}
        assert validate_manifest(manifest) == (True, None)

    def test_missing_kind(self):
        manifest = {"apiVersion": "v1", "metadata": {"name": "a"}}
        is_valid, error = validate_manifest(manifest)
        assert is_valid is False
        assert "'kind' is a required property" in error

    def test_missing_name(self):
        is_valid, error = validate_manifest(
            {"apiVersion": "v1", "kind": "Secret", "metadata": {}}
        )
        assert is_valid is False
        assert error.startswith("metadata:")

    def test_non_string_label(self, sample_deployment):
        sample_deployment["metadata"]["labels"]["replicas"] = 3
        is_valid, error = validate_manifest(sample_deployment)
        assert is_valid is False
        assert "metadata.labels.replicas" in error

    def test_not_a_mapping(self):
        is_valid, error = validate_manifest(["not", "a", "manifest"])
        assert is_valid is False
        assert "mapping" in error

    def test_multiple_errors_joined(self):
        is_valid, error = validate_against_schema({"metadata": {}}, MANIFEST_SCHEMA)
        assert is_valid is False
        assert "apiVersion" in error
        assert "kind" in error
        assert "; " in error


class TestValidateHub:
    """Tests for validate_hub function."""

    def test_valid_hub(self, sample_hub):
        assert validate_hub(sample_hub) == (True, None)

    def test_minimal_hub(self):
        hub = {"metadata": {"name": "h", "namespace": "ns"}, "spec": {}}
        assert validate_hub(hub) == (True, None)

    def test_wrong_kind(self, sample_hub):
        sample_hub["kind"] = "Deployment"
        is_valid, error = validate_hub(sample_hub)
        assert is_valid is False
        assert error.startswith("kind:")

    def test_missing_namespace(self, sample_hub):
        del sample_hub["metadata"]["namespace"]
        is_valid, error = validate_hub(sample_hub)
        assert is_valid is False
        assert "'namespace' is a required property" in error

    def test_bad_pull_policy(self, sample_hub):
        sample_hub["spec"]["imagePullPolicy"] = "Sometimes"
        is_valid, error = validate_hub(sample_hub)
        assert is_valid is False
        assert "spec.imagePullPolicy" in error

    def test_not_a_mapping(self):
        assert validate_hub(None)[0] is False
