"""
Tests for values.yaml image matching and naming-rule validation.
"""

import pytest

from project_service.errors import MalformedPayloadError, ValidationError
from project_service.models import CustomRule, ImageSearchingRule
from project_service.services.image_rules import (
    ResourceType,
    build_image,
    extract_image_name,
    get_preset_rules,
    match_images,
    parse_values_yaml,
    replace_rule_variables,
    validate_common_rule,
    validate_custom_rules,
    validate_match_rules,
)


NESTED_VALUES = """
api:
  replicas: 2
  image:
    repository: team/api
    tag: v1.2.0
worker:
  image: busybox:1.36
frontend:
  image:
    registry: registry.example.com
    repository: web/frontend
    tag: "3.0"
"""


class TestParseValuesYaml:
    def test_empty_text_is_empty_mapping(self):
        assert parse_values_yaml("") == {}
        assert parse_values_yaml("# only a comment\n") == {}

    def test_invalid_yaml_raises_malformed(self):
        with pytest.raises(MalformedPayloadError) as exc:
            parse_values_yaml("image: [unclosed", service_name="api")
        assert "api" in exc.value.message

    def test_top_level_list_raises_malformed(self):
        with pytest.raises(MalformedPayloadError):
            parse_values_yaml("- a\n- b\n")


class TestMatchImages:
    def test_presets_cover_common_chart_layouts(self):
        values = parse_values_yaml(NESTED_VALUES)
        containers = match_images(values, get_preset_rules())

        assert [c.name for c in containers] == ["api", "busybox", "frontend"]
        assert containers[0].image == "team/api:v1.2.0"
        assert containers[0].image_path.image == "api.image.repository"
        assert containers[0].image_path.tag == "api.image.tag"
        assert containers[1].image == "busybox:1.36"
        assert containers[1].image_path.image == "worker.image"
        assert containers[1].image_path.tag == ""
        assert containers[2].image == "registry.example.com/web/frontend:3.0"
        assert containers[2].image_path.repo == "frontend.image.registry"

    def test_top_level_image_block(self):
        values = {"image": {"repository": "nginx", "tag": "1.25"}}
        containers = match_images(values, get_preset_rules())

        assert len(containers) == 1
        assert containers[0].name == "nginx"
        assert containers[0].image == "nginx:1.25"

    def test_output_follows_document_order_not_rule_order(self):
        values = {"a": {"image": "alpha:1"}, "b": {"image": "beta:1"}}
        rules = [
            ImageSearchingRule(image="b.image", in_use=True),
            ImageSearchingRule(image="a.image", in_use=True),
        ]

        containers = match_images(values, rules)

        assert [c.name for c in containers] == ["alpha", "beta"]
        assert [c.image_path.image for c in containers] == ["a.image", "b.image"]

    def test_rules_not_in_use_are_ignored(self):
        values = {"image": "redis:7"}
        rules = [ImageSearchingRule(image="image", in_use=False)]
        assert match_images(values, rules) == []

    def test_earlier_rule_claims_leaves_first(self):
        values = {"image": {"registry": "r.io", "repository": "app", "tag": "1"}}
        containers = match_images(values, get_preset_rules())

        # registry/repository/tag preset wins; the repository/tag preset cannot reuse the leaves
        assert len(containers) == 1
        assert containers[0].image == "r.io/app:1"

    def test_duplicate_container_names_emitted_once(self):
        values = {
            "a": {"image": "nginx:1.25"},
            "b": {"image": "mirror.io/nginx:1.25"},
        }
        containers = match_images(values, get_preset_rules())
        assert [c.image for c in containers] == ["nginx:1.25"]

    def test_placeholder_binds_same_key_in_all_paths(self):
        values = {
            "api": {"container": {"name": "team/api", "version": "v1"}},
            "web": {"container": {"name": "team/web", "version": "v2"}},
            "tags": {"default": "latest"},
        }
        rules = [ImageSearchingRule(image="$*.container.name", tag="$*.container.version", in_use=True)]
        containers = match_images(values, rules)

        assert [(c.name, c.image) for c in containers] == [("api", "team/api:v1"), ("web", "team/web:v2")]
        assert containers[1].image_path.image == "web.container.name"
        assert containers[1].image_path.tag == "web.container.version"

    def test_non_scalar_and_boolean_leaves_do_not_match(self):
        values = {"image": True, "sidecar": {"image": ["a", "b"]}}
        assert match_images(values, get_preset_rules()) == []

    def test_numeric_tag_is_stringified(self):
        values = {"image": {"repository": "app", "tag": 2}}
        assert match_images(values, get_preset_rules())[0].image == "app:2"

    def test_list_items_are_walked(self):
        values = {"sidecars": [{"image": "envoy:1.29"}, {"image": "fluentd:1.16"}]}
        containers = match_images(values, get_preset_rules())

        assert [c.name for c in containers] == ["envoy", "fluentd"]
        assert containers[1].image_path.image == "sidecars.1.image"

    def test_matching_is_deterministic(self):
        values = parse_values_yaml(NESTED_VALUES)
        first = match_images(values, get_preset_rules())
        second = match_images(values, get_preset_rules())
        assert first == second


class TestImageHelpers:
    def test_build_image(self):
        assert build_image("r.io/", "/team/app", "1.0") == "r.io/team/app:1.0"
        assert build_image("", "app", "") == "app"

    def test_extract_image_name(self):
        assert extract_image_name("registry:5000/team/nginx:1.25@sha256:abc") == "nginx"
        assert extract_image_name("redis") == "redis"


class TestValidateMatchRules:
    def test_empty_rule_list_rejected(self):
        with pytest.raises(ValidationError):
            validate_match_rules([])

    def test_rules_without_in_use_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_match_rules([ImageSearchingRule(image="image", in_use=False)])
        assert "no rule is selected" in exc.value.message

    def test_blank_in_use_rule_does_not_count(self):
        rules = [ImageSearchingRule(in_use=True), ImageSearchingRule(image="image.repository", in_use=False)]
        with pytest.raises(ValidationError) as exc:
            validate_match_rules(rules)
        assert "no rule is selected" in exc.value.message

    def test_rule_needs_repo_or_image(self):
        with pytest.raises(ValidationError):
            validate_match_rules([ImageSearchingRule(tag="image.tag", in_use=True)])

    def test_empty_path_segment_rejected(self):
        with pytest.raises(ValidationError):
            validate_match_rules([ImageSearchingRule(image="image..repository", in_use=True)])

    def test_blank_rules_are_tolerated(self):
        validate_match_rules([ImageSearchingRule(), ImageSearchingRule(image="image", in_use=True)])

    def test_presets_are_valid(self):
        validate_match_rules(get_preset_rules())


class TestCustomRuleValidation:
    def test_known_variables_are_replaced(self):
        assert replace_rule_variables("{{.TIMESTAMP}}-{{.TASK_ID}}") == "ss-ss"
        assert replace_rule_variables("{{.UNKNOWN}}") == "{{.UNKNOWN}}"

    def test_image_rule_without_colon_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_common_rule("myrepo-app", "branch_rule", ResourceType.image)
        assert "colon" in exc.value.message

    def test_image_rule_accepted(self):
        validate_common_rule("myrepo-app:1.0", "branch_rule", ResourceType.image)
        validate_common_rule("{{.TIMESTAMP}}-x:{{.REPO_BRANCH}}", "pr_rule", ResourceType.image)

    def test_image_rule_with_bad_characters_rejected(self):
        with pytest.raises(ValidationError):
            validate_common_rule("App:1.0", "tag_rule", ResourceType.image)
        with pytest.raises(ValidationError):
            validate_common_rule("app:-bad", "tag_rule", ResourceType.image)

    def test_empty_rule_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_common_rule("", "pr_rule", ResourceType.tar)
        assert exc.value.message == "tar rule pr_rule can not be empty"

    def test_tar_rules(self):
        validate_common_rule("{{.SERVICE}}-{{.TIMESTAMP}}", "branch_rule", ResourceType.tar)
        with pytest.raises(ValidationError):
            validate_common_rule("svc:1.0", "branch_rule", ResourceType.tar)

    def test_validate_custom_rules_skips_unset_fields(self):
        validate_custom_rules(CustomRule(branch_rule="app:{{.REPO_BRANCH}}"), None)
        with pytest.raises(ValidationError):
            validate_custom_rules(None, CustomRule(tag_rule="Bad Tar"))
