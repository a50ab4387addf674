"""
Content versioning helpers.

A post's content exists in up to three layers:

- ``publish`` (the live "source" columns ``props`` / ``overrides``)
- ``review`` (human edits staged in ``review_props`` / ``review_overrides``)
- ``ai-review`` (agent edits staged in ``ai_review_props`` / ``ai_review_overrides``)

Reads fall back from the requested layer to the layers below it
(ai-review -> review -> source); writes always go to the requested layer's own
columns. Module rows added or removed inside a draft layer are flagged instead
of being inserted into or removed from the live layout.
"""

import copy
from typing import Any, Dict, List, Mapping, Optional

from core.exceptions import CmsError

MODE_PUBLISH = 'publish'
MODE_REVIEW = 'review'
MODE_AI_REVIEW = 'ai-review'
VALID_MODES = [MODE_PUBLISH, MODE_REVIEW, MODE_AI_REVIEW]
DRAFT_MODES = [MODE_REVIEW, MODE_AI_REVIEW]

# Post fields that always come from the live row, never from a draft
LIVE_ONLY_FIELDS = ('type', 'locale', 'status')

_MODE_ALIASES = {
    'publish': MODE_PUBLISH,
    'source': MODE_PUBLISH,
    'approved': MODE_PUBLISH,
    'review': MODE_REVIEW,
    'ai-review': MODE_AI_REVIEW,
    'ai_review': MODE_AI_REVIEW,
}

# Column names per layer
_PROPS_COLUMNS = {
    MODE_PUBLISH: 'props',
    MODE_REVIEW: 'review_props',
    MODE_AI_REVIEW: 'ai_review_props',
}
_OVERRIDES_COLUMNS = {
    MODE_PUBLISH: 'overrides',
    MODE_REVIEW: 'review_overrides',
    MODE_AI_REVIEW: 'ai_review_overrides',
}
_DRAFT_COLUMNS = {
    MODE_REVIEW: 'review_draft',
    MODE_AI_REVIEW: 'ai_review_draft',
}
_ADDED_FLAGS = {
    MODE_REVIEW: 'review_added',
    MODE_AI_REVIEW: 'ai_review_added',
}
_DELETED_FLAGS = {
    MODE_REVIEW: 'review_deleted',
    MODE_AI_REVIEW: 'ai_review_deleted',
}

# Read order per layer, first non-empty value wins
_READ_ORDER = {
    MODE_PUBLISH: [MODE_PUBLISH],
    MODE_REVIEW: [MODE_REVIEW, MODE_PUBLISH],
    MODE_AI_REVIEW: [MODE_AI_REVIEW, MODE_REVIEW, MODE_PUBLISH],
}


def normalize_mode(value: Optional[str]) -> str:
    """
    Normalize a save/view mode name.

    Args:
        value: Raw mode string; ``None`` or empty means publish

    Returns:
        str: One of ``publish``, ``review`` or ``ai-review``

    Raises:
        CmsError: If the value is not a known mode or alias
    """
    if value is None or value == '':
        return MODE_PUBLISH
    mode = _MODE_ALIASES.get(str(value).strip().lower())
    if mode is None:
        raise CmsError(f"Invalid mode: {value}", status_code=400,
                       meta={'allowed': sorted(_MODE_ALIASES)})
    return mode


def is_draft_mode(mode: str) -> bool:
    return mode in DRAFT_MODES


def props_column(mode: str) -> str:
    return _PROPS_COLUMNS[mode]


def overrides_column(mode: str) -> str:
    return _OVERRIDES_COLUMNS[mode]


def draft_column(mode: str) -> str:
    """Post column holding the JSON snapshot of a draft layer."""
    if mode not in _DRAFT_COLUMNS:
        raise CmsError(f"Mode {mode} has no draft column", status_code=400)
    return _DRAFT_COLUMNS[mode]


def added_flag(mode: str) -> Optional[str]:
    return _ADDED_FLAGS.get(mode)


def deleted_flag(mode: str) -> Optional[str]:
    return _DELETED_FLAGS.get(mode)


def deep_merge(base: Optional[Mapping[str, Any]], patch: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Merge ``patch`` into ``base`` and return a new dictionary.

    Nested dictionaries are merged recursively. Lists and scalar values in
    ``patch`` replace the value in ``base``. Neither input is mutated.

    Args:
        base: Base mapping (may be None)
        patch: Mapping whose values take precedence (may be None)

    Returns:
        Dict[str, Any]: Merged copy
    """
    result: Dict[str, Any] = copy.deepcopy(dict(base or {}))
    for key, value in (patch or {}).items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _first_present(obj: Any, columns: List[str]) -> Optional[Dict[str, Any]]:
    for column in columns:
        value = getattr(obj, column, None)
        if value:
            return value
    return None


def read_props(instance: Any, mode: str) -> Dict[str, Any]:
    """Props of a module instance as seen from ``mode``."""
    columns = [_PROPS_COLUMNS[m] for m in _READ_ORDER[mode]]
    return copy.deepcopy(_first_present(instance, columns) or {})


def read_overrides(post_module: Any, mode: str) -> Optional[Dict[str, Any]]:
    """Overrides of a post module as seen from ``mode`` (None when no layer has any)."""
    columns = [_OVERRIDES_COLUMNS[m] for m in _READ_ORDER[mode]]
    value = _first_present(post_module, columns)
    return copy.deepcopy(value) if value else None


def effective_props(post_module: Any, mode: str) -> Dict[str, Any]:
    """
    Resolved props of a placed module: instance props deep-merged with overrides.

    Args:
        post_module: PostModule row (with its module_instance loaded)
        mode: Normalized mode

    Returns:
        Dict[str, Any]: Props to render
    """
    base = read_props(post_module.module_instance, mode)
    return deep_merge(base, read_overrides(post_module, mode))


def is_visible(post_module: Any, mode: str) -> bool:
    """
    Whether a post module row belongs to the layout seen from ``mode``.

    - publish hides rows added in review or ai-review
    - review hides rows deleted in review and rows added by ai-review
    - ai-review hides rows deleted in review or ai-review
    """
    if mode == MODE_PUBLISH:
        return not (post_module.review_added or post_module.ai_review_added)
    if mode == MODE_REVIEW:
        return not (post_module.review_deleted or post_module.ai_review_added)
    return not (post_module.review_deleted or post_module.ai_review_deleted)


def visible_modules(post_modules: List[Any], mode: str) -> List[Any]:
    """Visible rows of a post's layout, ordered by ``order_index``."""
    rows = [pm for pm in post_modules if is_visible(pm, mode)]
    return sorted(rows, key=lambda pm: (pm.order_index or 0, pm.id or 0))


def read_post_fields(post: Any, mode: str, fields: List[str]) -> Dict[str, Any]:
    """
    Post-level content fields as seen from ``mode``.

    Draft layers store post fields at the top level of the post's draft JSON
    column; values present there take precedence over the lower layers.
    """
    values = {field: getattr(post, field) for field in fields}
    for layer in reversed(_READ_ORDER[mode]):
        if layer == MODE_PUBLISH:
            continue
        draft = getattr(post, _DRAFT_COLUMNS[layer], None) or {}
        for field in fields:
            if field in draft and field not in LIVE_ONLY_FIELDS:
                values[field] = draft[field]
    return values
