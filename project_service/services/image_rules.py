"""
Image searching over Helm values.

A values document is the plain tree produced by ``yaml.safe_load``: mappings,
lists and scalars. Rules are matched by a pre-order walk of that tree. At every
mapping node each in-use rule resolves its repo/image/tag key paths relative to
the node; when all of them land on scalar leaves the node yields a container.
The ``$*`` segment matches any single key of the node and is bound to the same
key in all three paths of the rule.

Also home of the validation for custom image/tar naming rules, which are
checked when project settings are saved.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

import yaml

from project_service.errors import MalformedPayloadError, ValidationError
from project_service.models import Container, CustomRule, ImagePath, ImageSearchingRule

logger = logging.getLogger("project_service.services.image_rules")

PLACEHOLDER = "$*"
COMPONENTS = ("repo", "image", "tag")

Path = Tuple[str, ...]

PRESET_RULES: Tuple[ImageSearchingRule, ...] = (
    ImageSearchingRule(repo="image.registry", image="image.repository", tag="image.tag", in_use=True, preset_id=1),
    ImageSearchingRule(image="image.repository", tag="image.tag", in_use=True, preset_id=2),
    ImageSearchingRule(image="image", in_use=True, preset_id=3),
)


def get_preset_rules() -> List[ImageSearchingRule]:
    return [r.model_copy() for r in PRESET_RULES]


# ─────────────────────────────────────────────────────────────
# Payload parsing
# ─────────────────────────────────────────────────────────────
def parse_values_yaml(text: str, *, service_name: str = "") -> Dict[str, Any]:
    try:
        data = yaml.safe_load(text) if text else None
    except yaml.YAMLError as e:
        raise MalformedPayloadError(f"failed to unmarshal values.yaml for service {service_name}", detail=str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedPayloadError(
            f"failed to unmarshal values.yaml for service {service_name}",
            detail=f"top level must be a mapping, got {type(data).__name__}",
        )
    return data


# ─────────────────────────────────────────────────────────────
# Match rule validation
# ─────────────────────────────────────────────────────────────
def _segments(pattern: str) -> Path:
    return tuple(pattern.split(".")) if pattern else ()


def validate_match_rules(rules: Sequence[ImageSearchingRule]) -> None:
    if not rules:
        raise ValidationError("match rules can't be empty")
    # blank rules are dropped before saving and never count as in use
    if not any(r.in_use and not r.is_blank() for r in rules):
        raise ValidationError("no rule is selected to be used")
    for idx, rule in enumerate(rules):
        if rule.is_blank():
            continue
        # tag-only rules cannot produce an image
        if not (rule.repo or rule.image):
            raise ValidationError(f"match rule #{idx + 1} needs a repo or image path")
        for field in COMPONENTS:
            pattern = getattr(rule, field)
            if pattern and any(seg == "" for seg in _segments(pattern)):
                raise ValidationError(f"match rule #{idx + 1} {field} path '{pattern}' has an empty segment")


# ─────────────────────────────────────────────────────────────
# Matching
# ─────────────────────────────────────────────────────────────
class _CompiledRule:
    __slots__ = ("rule", "paths", "uses_placeholder")

    def __init__(self, rule: ImageSearchingRule):
        self.rule = rule
        self.paths: Dict[str, Path] = {f: _segments(getattr(rule, f)) for f in COMPONENTS if getattr(rule, f)}
        self.uses_placeholder = any(PLACEHOLDER in p for p in self.paths.values())

    def bindings(self, node: Dict[Any, Any]) -> List[Optional[str]]:
        if not self.uses_placeholder:
            return [None]
        return [str(k) for k in node.keys()]


def _child(node: Any, seg: str) -> Tuple[bool, Any]:
    if isinstance(node, dict):
        if seg in node:
            return True, node[seg]
        for k, v in node.items():
            if str(k) == seg:
                return True, v
        return False, None
    if isinstance(node, list) and seg.isdigit():
        i = int(seg)
        if i < len(node):
            return True, node[i]
    return False, None


def _resolve_scalar(node: Any, path: Path) -> Optional[str]:
    cur = node
    for seg in path:
        found, cur = _child(cur, seg)
        if not found:
            return None
    # bool is an int subclass; a flag is never an image component
    if isinstance(cur, bool) or not isinstance(cur, (str, int, float)):
        return None
    value = str(cur).strip()
    return value or None


def _walk(node: Any, path: Path = ()) -> Iterator[Tuple[Path, Dict[Any, Any]]]:
    if isinstance(node, dict):
        yield path, node
        for k, v in node.items():
            yield from _walk(v, path + (str(k),))
    elif isinstance(node, list):
        for i, v in enumerate(node):
            yield from _walk(v, path + (str(i),))


def _positions(node: Any, path: Path = (), out: Optional[Dict[Path, int]] = None) -> Dict[Path, int]:
    """Pre-order index of every path in the document, scalars included."""
    if out is None:
        out = {}
    out.setdefault(path, len(out))
    if isinstance(node, dict):
        for k, v in node.items():
            _positions(v, path + (str(k),), out)
    elif isinstance(node, list):
        for i, v in enumerate(node):
            _positions(v, path + (str(i),), out)
    return out


def build_image(repo: str, image: str, tag: str) -> str:
    ref = "/".join(p for p in (repo.rstrip("/"), image.lstrip("/")) if p)
    return f"{ref}:{tag}" if tag else ref


def extract_image_name(image: str) -> str:
    """'registry:5000/team/nginx:1.25@sha256:..' -> 'nginx'"""
    ref = image.split("@", 1)[0]
    last = ref.rsplit("/", 1)[-1]
    return last.split(":", 1)[0]


def match_images(values: Dict[str, Any], rules: Sequence[ImageSearchingRule]) -> List[Container]:
    """
    Containers found in `values`, in document order of their first leaf. Only
    in-use rules apply; for a given node earlier rules take precedence. A leaf
    already used by a match is not reused, and a container name is emitted once.
    """
    compiled = [_CompiledRule(r) for r in rules if r.in_use and not r.is_blank()]
    positions = _positions(values)
    found: List[Tuple[int, Container]] = []
    claimed: Set[Path] = set()

    for node_path, node in _walk(values):
        for crule in compiled:
            for binding in crule.bindings(node):
                parts: Dict[str, str] = {}
                leaves: Dict[str, Path] = {}
                for field, rel in crule.paths.items():
                    if binding is not None:
                        rel = tuple(binding if seg == PLACEHOLDER else seg for seg in rel)
                    value = _resolve_scalar(node, rel)
                    if value is None:
                        break
                    parts[field] = value
                    leaves[field] = node_path + rel
                else:
                    if not (parts.get("repo") or parts.get("image")):
                        continue
                    if any(leaf in claimed for leaf in leaves.values()):
                        continue
                    image = build_image(parts.get("repo", ""), parts.get("image", ""), parts.get("tag", ""))
                    claimed.update(leaves.values())
                    first = min(positions.get(p, len(positions)) for p in leaves.values())
                    found.append(
                        (
                            first,
                            Container(
                                name=extract_image_name(image),
                                image=image,
                                image_path=ImagePath(**{f: ".".join(p) for f, p in leaves.items()}),
                            ),
                        )
                    )

    containers: List[Container] = []
    names: Set[str] = set()
    for _, container in sorted(found, key=lambda item: item[0]):
        if not container.name or container.name in names:
            logger.debug("skip image %s: duplicate or empty name", container.image)
            continue
        names.add(container.name)
        containers.append(container)
    return containers


# ─────────────────────────────────────────────────────────────
# Custom naming rules (image / tar delivery)
# ─────────────────────────────────────────────────────────────
class ResourceType(str, Enum):
    image = "image"
    tar = "tar"


RULE_VARIABLES = (
    "SERVICE",
    "IMAGE_NAME",
    "TIMESTAMP",
    "TASK_ID",
    "REPO_COMMIT_ID",
    "PROJECT",
    "ENV_NAME",
    "REPO_TAG",
    "REPO_BRANCH",
    "REPO_PR",
)

_VARIABLE_RE = re.compile(r"\{\{\s*\.(\w+)\s*\}\}")
_IMAGE_RE = re.compile(r"^[a-z0-9][a-zA-Z0-9-_:.]+$")
_TAR_RE = re.compile(r"^[a-z0-9][a-zA-Z0-9-_.]+$")
_TAG_RE = re.compile(r"^[a-z0-9A-Z_][a-zA-Z0-9-_.]+$")


def replace_rule_variables(rule: str, value: str = "ss") -> str:
    """Substitute known {{.VAR}} placeholders; unknown ones are left in place."""
    return _VARIABLE_RE.sub(lambda m: value if m.group(1) in RULE_VARIABLES else m.group(0), rule)


def validate_common_rule(current_rule: str, rule_type: str, resource_type: ResourceType) -> None:
    kind = resource_type.value
    if not current_rule:
        raise ValidationError(f"{kind} rule {rule_type} can not be empty")
    if resource_type == ResourceType.image and ":" not in current_rule:
        raise ValidationError(f"{kind} rule {rule_type} is invalid, must contain a colon")

    rendered = replace_rule_variables(current_rule)
    if resource_type == ResourceType.image:
        tag = rendered.split(":")[1]
        if not _IMAGE_RE.match(rendered) or not _TAG_RE.match(tag):
            raise ValidationError(f"image {rule_type} contains invalid characters, please check")
    elif not _TAR_RE.match(rendered):
        raise ValidationError(f"tar {rule_type} contains invalid characters, please check")


def validate_custom_rules(image_rule: Optional[CustomRule], tar_rule: Optional[CustomRule]) -> None:
    for rule, resource_type in ((image_rule, ResourceType.image), (tar_rule, ResourceType.tar)):
        if rule is None:
            continue
        for field, value in rule.model_dump(exclude_none=True).items():
            validate_common_rule(value, field, resource_type)
