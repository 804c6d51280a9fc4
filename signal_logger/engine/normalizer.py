"""
normalizer.py — Call Normalizer.

Turns the two accepted call shapes into one NormalizedCall:

    ["a", "b"]                          → payload {"messages": ["a", "b"]}
    {"template": {...}, "providers": …} → payload {"template": {...}}
                                          overrides per channel id

No side effects. Anything that cannot be normalised raises
MalformedCallError before a channel or a dedup window sees the call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Set, Tuple

from signal_logger.core.errors import MalformedCallError
from signal_logger.engine.models import CONTROL_KEYS, LogLabel, NormalizedCall

logger = logging.getLogger(__name__)


def _is_message_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _check_body(options: Mapping[str, Any], where: str, *, required: bool) -> None:
    has_messages = options.get("messages") is not None
    has_template = options.get("template") is not None

    if has_messages and has_template:
        raise MalformedCallError(
            f"{where}: pass either 'messages' or 'template', not both",
            where=where,
        )
    if required and not (has_messages or has_template):
        raise MalformedCallError(
            f"{where}: the property 'messages' or 'template' must be passed "
            "to a logging function",
            where=where,
        )
    if has_messages and not _is_message_sequence(options["messages"]):
        raise MalformedCallError(
            f"{where}: 'messages' must be a list or tuple, "
            f"got {type(options['messages']).__name__}",
            where=where,
        )
    if has_template and not isinstance(options["template"], Mapping):
        raise MalformedCallError(
            f"{where}: 'template' must be a mapping, "
            f"got {type(options['template']).__name__}",
            where=where,
        )

    _check_labels(options.get("labels"), where)
    if has_template:
        _check_labels(options["template"].get("labels"), f"{where}.template")


def _check_labels(labels: Any, where: str) -> None:
    if labels is None:
        return
    if not _is_message_sequence(labels):
        raise MalformedCallError(
            f"{where}: 'labels' must be a list of labels, "
            f"got {type(labels).__name__}",
            where=where,
        )
    for raw in labels:
        try:
            LogLabel.coerce(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedCallError(
                f"{where}: invalid label {raw!r}", where=where,
            ) from exc


def _normalize_overrides(
    providers: Optional[Mapping[str, Any]],
) -> Tuple[Dict[str, Dict[str, Any]], Set[str]]:
    overrides: Dict[str, Dict[str, Any]] = {}
    shorthand: Set[str] = set()

    if providers is None:
        return overrides, shorthand
    if not isinstance(providers, Mapping):
        raise MalformedCallError(
            f"'providers' must be a mapping of channel id to overrides, "
            f"got {type(providers).__name__}"
        )

    for channel_id, override in providers.items():
        where = f"providers[{channel_id!r}]"
        if _is_message_sequence(override):
            overrides[channel_id] = {"messages": list(override)}
            shorthand.add(channel_id)
        elif isinstance(override, Mapping):
            _check_body(override, where, required=False)
            overrides[channel_id] = dict(override)
        else:
            raise MalformedCallError(
                f"{where} must be a mapping or a message sequence, "
                f"got {type(override).__name__}",
                where=where,
            )

    return overrides, shorthand


def normalize_call(options: Any) -> NormalizedCall:
    """
    Normalise raw call options.

    Parameters
    ----------
    options : list | tuple | Mapping
        A bare message sequence or a structured options mapping.

    Returns
    -------
    NormalizedCall

    Raises
    ------
    MalformedCallError
        If the options have neither or both of messages/template, or are
        of an unsupported type.
    """
    if _is_message_sequence(options):
        return NormalizedCall(payload={"messages": list(options)})

    if not isinstance(options, Mapping):
        raise MalformedCallError(
            "Logging options must be a message sequence or a mapping, "
            f"got {type(options).__name__}"
        )

    _check_body(options, "call", required=True)

    overrides, shorthand = _normalize_overrides(options.get("providers"))

    payload = {
        key: value for key, value in options.items()
        if key not in CONTROL_KEYS
        and value is not None
    }
    if "messages" in payload:
        payload["messages"] = list(payload["messages"])

    call = NormalizedCall(
        payload=payload,
        overrides=overrides,
        shorthand=frozenset(shorthand),
        enabled=options.get("enabled"),
        deduplicate=options.get("deduplicate"),
    )
    logger.debug(
        "Normalised %s call with %d channel override(s)",
        "styled" if call.is_styled else "unstyled", len(overrides),
    )
    return call
