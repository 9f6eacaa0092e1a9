"""Deterministic anchor assignment over a flat content node sequence."""

from collections.abc import Iterable

from marginalia.core.modules.anchor.models import GENERAL_ANCHOR, Anchor, ContentNode
from marginalia.core.modules.anchor.slug import slugify


def base_slug(node: ContentNode) -> str:
    """Slug of the node text, or of its kind when the text has no usable characters."""
    return slugify(node.text, fallback=slugify(node.kind.value))


def assign_anchors(nodes: Iterable[ContentNode]) -> list[Anchor]:
    """Assign a unique anchor to every node, in document order.

    The first node with a given base slug gets the slug itself, the Nth one
    gets "{slug}-N". A candidate that is already taken in this pass (for
    example a paragraph whose own text is "Intro 2") advances the counter
    until a free id is found, so ids never repeat. GENERAL_ANCHOR is reserved.

    Suffixes depend on occurrence order: adding or removing an earlier node
    with the same base slug relabels the later ones.
    """
    occurrences: dict[str, int] = {}
    issued: set[str] = {GENERAL_ANCHOR}
    anchors: list[Anchor] = []

    for node in nodes:
        base = base_slug(node)
        count = occurrences.get(base, 0) + 1
        candidate = base if count == 1 else f"{base}-{count}"
        while candidate in issued:
            count += 1
            candidate = f"{base}-{count}"
        occurrences[base] = count
        issued.add(candidate)
        anchors.append(Anchor(id=candidate, node_kind=node.kind, position=node.position))

    return anchors
