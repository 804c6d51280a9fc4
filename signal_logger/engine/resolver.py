"""
resolver.py — Options Resolver.

Computes one ResolvedDelivery per channel by merging, lowest precedence
first:

    1. engine defaults       Environment / Side labels
    2. call-level payload    messages | template, context, severity fields
    3. channel override      providers[<channel id>]

Top-level keys merge shallowly (the channel key replaces the call key).
template.labels and template.context merge deeply:

    labels   defaults → call → channel; a later layer replaces earlier
             labels with the same name in place, new names are appended
    context  {**call_context, **channel_context}

The caller's options are never mutated; every delivery is a new dict.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from signal_logger.engine.models import CONTROL_KEYS, LogLabel, NormalizedCall

BODY_KEYS = ("messages", "template")


def merge_labels(*layers: Optional[Iterable[Any]]) -> List[LogLabel]:
    """
    Merge label layers, lowest precedence first.

    Each layer replaces the labels of earlier layers that share a name,
    keeping the position of the first replaced label. Duplicate names
    inside one layer are kept as given.
    """
    result: List[LogLabel] = []

    for layer in layers:
        if not layer:
            continue
        labels = [LogLabel.coerce(raw) for raw in layer]
        names = {label.name for label in labels}
        placed = set()
        merged: List[LogLabel] = []

        for existing in result:
            if existing.name not in names:
                merged.append(existing)
            elif existing.name not in placed:
                merged.extend(l for l in labels if l.name == existing.name)
                placed.add(existing.name)

        merged.extend(l for l in labels if l.name not in placed)
        result = merged

    return result


def merge_template(
    defaults: Sequence[LogLabel],
    call_template: Mapping[str, Any],
    channel_template: Mapping[str, Any],
) -> Dict[str, Any]:
    """Merge two template layers on top of the default labels."""
    template = {**call_template, **channel_template}
    template["labels"] = merge_labels(
        defaults,
        call_template.get("labels"),
        channel_template.get("labels"),
    )

    call_context = call_template.get("context")
    channel_context = channel_template.get("context")
    if call_context is not None or channel_context is not None:
        template["context"] = {**(call_context or {}), **(channel_context or {})}

    return template


def resolve_delivery(
    call: NormalizedCall,
    channel_id: str,
    default_labels: Sequence[LogLabel],
    *,
    annotations: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the delivery one channel receives for this call.

    Parameters
    ----------
    call : NormalizedCall
    channel_id : str
    default_labels : sequence of LogLabel
        Engine-injected labels (lowest precedence).
    annotations : mapping, optional
        Engine fields merged into the call-level payload first
        (e.g. number_of_calls from a dedup window).

    Returns
    -------
    dict
        A fresh ResolvedDelivery.
    """
    base: Dict[str, Any] = {**call.payload, **(annotations or {})}
    override = {
        key: value for key, value in call.overrides.get(channel_id, {}).items()
        if key not in CONTROL_KEYS
    }

    # Array shorthand: the channel's own messages replace the global payload
    if channel_id in call.shorthand:
        delivery = {
            "messages": list(override["messages"]),
            "labels": merge_labels(default_labels),
        }
        delivery.update(annotations or {})
        return delivery

    delivery = dict(base)
    replaces_body = any(override.get(key) is not None for key in BODY_KEYS)
    if replaces_body:
        for key in BODY_KEYS:
            delivery.pop(key, None)

    for key, value in override.items():
        if key == "template" or value is None:
            continue
        delivery[key] = value

    if "messages" in delivery:
        delivery["messages"] = list(delivery["messages"])

    channel_template = override.get("template")
    if channel_template is not None:
        call_template = base.get("template") or {}
        delivery["template"] = merge_template(
            default_labels, call_template, channel_template,
        )
    elif "template" in delivery:
        delivery["template"] = merge_template(
            default_labels, delivery["template"], {},
        )
    else:
        delivery["labels"] = merge_labels(
            default_labels, base.get("labels"), override.get("labels"),
        )

    return delivery
