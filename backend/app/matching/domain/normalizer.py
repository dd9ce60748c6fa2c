"""Render a member profile into the text we embed."""

from __future__ import annotations

from typing import Any, Iterable, Mapping


def _text(value: Any) -> str:
	if not isinstance(value, str):
		return ""
	return value.strip()


def clean_tags(values: Any) -> list[str]:
	"""Trimmed, non-empty tags in their original order without repeats."""
	if not isinstance(values, (list, tuple)):
		return []
	seen: set[str] = set()
	tags: list[str] = []
	for value in values:
		tag = _text(value)
		if tag and tag not in seen:
			seen.add(tag)
			tags.append(tag)
	return tags


def _joined(values: Iterable[str]) -> str:
	return ", ".join(values)


def profile_to_embedding_text(profile: Mapping[str, Any] | None) -> str:
	"""Fixed-order, newline separated rendering of the known profile fields.

	Blank fields are dropped entirely; an empty profile renders to "".
	"""
	if not profile:
		return ""
	parts: list[str] = []
	bio = _text(profile.get("bio"))
	if bio:
		parts.append(bio)
	current_work = _text(profile.get("current_work"))
	if current_work:
		parts.append(f"Currently working on: {current_work}")
	looking_for = clean_tags(profile.get("looking_for"))
	if looking_for:
		parts.append(f"Looking for: {_joined(looking_for)}")
	offering = clean_tags(profile.get("offering"))
	if offering:
		parts.append(f"Can offer: {_joined(offering)}")
	return "\n".join(parts)
