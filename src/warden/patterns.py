"""Pattern library - static catalogs of categorized detection rules.

Rules are data. They live in YAML catalogs under ``warden/rules/`` and are
compiled once into frozen PatternCategory objects. Nothing here mutates at
runtime: a hook loads the library, matches, and exits.

Adding a rule is a catalog edit. Adding a category is a catalog edit plus,
if a hook should run it, one entry in a hook profile.
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import yaml

from .exceptions import CatalogError
from .types import Detection, PatternRule, RuleTarget, Severity

RULES_DIR = Path(__file__).parent / "rules"

DEFAULT_FLAGS = re.IGNORECASE

# Scanning stops after this many characters of one text. Python's re holds
# the GIL while matching, so the hook timeout cannot interrupt a single
# pathological search.
MAX_SCAN_CHARS = 200_000

_SEVERITIES = {s.value: s for s in Severity}
_TARGETS = {t.value: t for t in RuleTarget}


@dataclass(frozen=True)
class PatternCategory:
    """One family of rules plus the paths it never applies to."""
    name: str
    rules: tuple[PatternRule, ...]
    description: str = ""
    exempt_paths: tuple[re.Pattern, ...] = ()

    def is_exempt(self, path: Optional[str]) -> bool:
        if not path:
            return False
        normalized = path.replace("\\", "/")
        return any(p.search(normalized) for p in self.exempt_paths)

    def _usable_paths(self, paths: Iterable[str]) -> list[str]:
        return [p.replace("\\", "/") for p in paths if p and not self.is_exempt(p)]

    def detect(
        self,
        content: Optional[str] = None,
        path: Optional[str] = None,
        *,
        intent: Optional[str] = None,
        command: Optional[str] = None,
        extra_paths: Iterable[str] = (),
        deleted_paths: Iterable[str] = (),
    ) -> list[Detection]:
        """Run every rule in this category once.

        Args:
            content: Text content rules scan
            path: Target path (path rules, exemptions)
            intent: Free-text intent (intent rules)
            command: Shell command line (command rules)
            extra_paths: Other paths written by the same operation
            deleted_paths: Paths the operation removes or moves away

        Returns:
            One Detection per matching rule, in rule order
        """
        if self.is_exempt(path):
            return []

        texts = {
            RuleTarget.CONTENT: content,
            RuleTarget.INTENT: intent,
            RuleTarget.COMMAND: command,
        }
        written = self._usable_paths([path, *extra_paths] if path else extra_paths)
        deleted = self._usable_paths(deleted_paths)

        detections = []
        for rule in self.rules:
            if rule.target == RuleTarget.PATH:
                found = match_paths(rule, written + deleted if rule.include_deletes else written)
            else:
                text = texts.get(rule.target)
                found = match_rule(rule, text) if text else None
            if found is None:
                continue
            matched, count = found
            detections.append(Detection(
                category=self.name,
                severity=rule.severity,
                matched_text=matched,
                message=rule.message,
                suggestion=rule.suggestion,
                rule_id=rule.id,
                count=count,
            ))
        return detections


def _line_around(text: str, start: int, end: int) -> str:
    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", end)
    return text[line_start:] if line_end == -1 else text[line_start:line_end]


def match_rule(rule: PatternRule, text: str) -> Optional[tuple[str, int]]:
    """Match one rule against text.

    Patterns are tried in order; the first pattern with at least one
    unsuppressed match wins. Repeated matches of that pattern are folded
    into a count rather than reported one by one.

    Returns:
        (first matched text, number of matches) or None
    """
    text = text[:MAX_SCAN_CHARS]
    for pattern in rule.patterns:
        first = None
        count = 0
        for match in pattern.finditer(text):
            if not match.group(0):
                continue
            if rule.unless:
                line = _line_around(text, match.start(), match.end())
                if any(u.search(line) for u in rule.unless):
                    continue
            if first is None:
                first = match.group(0)
            count += 1
        if first is not None:
            return first.strip() or first, count
    return None


def match_paths(rule: PatternRule, paths: Iterable[str]) -> Optional[tuple[str, int]]:
    """Match a path rule against several paths, folded like match_rule."""
    first = None
    count = 0
    for path in paths:
        found = match_rule(rule, path)
        if found is None:
            continue
        if first is None:
            first = found[0]
        count += found[1]
    return None if first is None else (first, count)


class PatternLibrary(Mapping):
    """Immutable mapping of category name -> PatternCategory."""

    def __init__(self, categories: Iterable[PatternCategory] = ()):
        merged: dict[str, PatternCategory] = {}
        for category in categories:
            existing = merged.get(category.name)
            if existing is not None:
                category = PatternCategory(
                    name=existing.name,
                    rules=existing.rules + category.rules,
                    description=existing.description or category.description,
                    exempt_paths=existing.exempt_paths + category.exempt_paths,
                )
            merged[category.name] = category
        self._categories = merged

    def __getitem__(self, name: str) -> PatternCategory:
        return self._categories[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def __repr__(self) -> str:
        return f"PatternLibrary({list(self._categories)!r})"

    @property
    def rules(self) -> list[PatternRule]:
        return [rule for category in self._categories.values() for rule in category.rules]

    def subset(self, names: Optional[Iterable[str]]) -> "PatternLibrary":
        """Library restricted to the named categories (None keeps all).

        Unknown names are ignored so a hook profile can name a category
        that a trimmed-down catalog set does not ship.
        """
        if names is None:
            return self
        wanted = list(names)
        return PatternLibrary(self._categories[n] for n in wanted if n in self._categories)

    def without(self, names: Iterable[str]) -> "PatternLibrary":
        """Library with the named categories removed."""
        dropped = set(names)
        return PatternLibrary(c for n, c in self._categories.items() if n not in dropped)

    def for_development(self) -> "PatternLibrary":
        """Library without the rules that guard warden's own source."""
        return PatternLibrary(
            replace(c, rules=tuple(r for r in c.rules if not r.development_exempt))
            for c in self._categories.values()
        )

    def detect(
        self,
        content: Optional[str] = None,
        path: Optional[str] = None,
        *,
        intent: Optional[str] = None,
        command: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
        extra_paths: Iterable[str] = (),
        deleted_paths: Iterable[str] = (),
    ) -> list[Detection]:
        """Run every (or the named) category and concatenate detections."""
        library = self.subset(categories)
        detections = []
        for category in library.values():
            detections.extend(
                category.detect(
                    content, path, intent=intent, command=command,
                    extra_paths=extra_paths, deleted_paths=deleted_paths,
                )
            )
        return detections

    @classmethod
    def from_mapping(cls, data: Mapping, source: str = "<mapping>") -> "PatternLibrary":
        """Build a library from an already-parsed catalog document."""
        return cls(_compile_catalog(data, source))

    @classmethod
    def from_files(cls, paths: Iterable[Path]) -> "PatternLibrary":
        """Build a library from catalog files and directories of catalogs."""
        categories = []
        for path in _catalog_files(paths):
            categories.extend(load_catalog(path))
        return cls(categories)

    @classmethod
    def load(
        cls,
        extra_catalogs: Iterable = (),
        disabled_categories: Iterable[str] = (),
    ) -> "PatternLibrary":
        """Load the bundled catalogs plus any extra ones.

        Args:
            extra_catalogs: Additional catalog files or directories
            disabled_categories: Category names to drop after loading

        Returns:
            The compiled library
        """
        library = cls.from_files([RULES_DIR, *(Path(p).expanduser() for p in extra_catalogs)])
        disabled = list(disabled_categories)
        return library.without(disabled) if disabled else library


def _catalog_files(paths: Iterable[Path]) -> list[Path]:
    files = []
    for path in paths:
        path = Path(path)
        if path.is_dir():
            files.extend(sorted(path.glob("*.yaml")) + sorted(path.glob("*.yml")))
        elif path.is_file():
            files.append(path)
        else:
            raise CatalogError("catalog not found", str(path))
    return files


def load_catalog(path: Path) -> list[PatternCategory]:
    """Parse and compile one YAML catalog file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(str(e), str(path)) from e
    return _compile_catalog(data or {}, str(path))


def _compile_patterns(raw, flags: int, where: str) -> tuple[re.Pattern, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    compiled = []
    for pattern in raw:
        try:
            compiled.append(re.compile(pattern, flags))
        except (re.error, TypeError) as e:
            raise CatalogError(f"invalid pattern {pattern!r}: {e}", where) from e
    return tuple(compiled)


def _compile_rule(raw: Mapping, category: str, index: int, source: str) -> PatternRule:
    rule_id = str(raw.get("id") or f"{category}-{index + 1}")
    where = f"{source}:{rule_id}"

    severity = _SEVERITIES.get(str(raw.get("severity", "medium")).lower())
    if severity is None:
        raise CatalogError(f"unknown severity {raw.get('severity')!r}", where)

    target = _TARGETS.get(str(raw.get("target", "content")).lower())
    if target is None:
        raise CatalogError(f"unknown target {raw.get('target')!r}", where)

    flags = 0 if raw.get("case_sensitive") else DEFAULT_FLAGS
    if raw.get("multiline"):
        flags |= re.MULTILINE

    patterns = _compile_patterns(raw.get("patterns", raw.get("pattern")), flags, where)
    if not patterns:
        raise CatalogError("rule has no pattern", where)

    message = raw.get("message")
    if not message:
        raise CatalogError("rule has no message", where)

    return PatternRule(
        id=rule_id,
        category=category,
        patterns=patterns,
        severity=severity,
        message=str(message).strip(),
        suggestion=str(raw.get("suggestion") or "").strip(),
        target=target,
        unless=_compile_patterns(raw.get("unless"), DEFAULT_FLAGS, where),
        include_deletes=bool(raw.get("include_deletes")),
        development_exempt=bool(raw.get("development_exempt")),
    )


def _compile_catalog(data: Mapping, source: str) -> list[PatternCategory]:
    if not isinstance(data, Mapping):
        raise CatalogError("catalog must be a mapping", source)

    categories = []
    for raw_category in data.get("categories") or []:
        name = raw_category.get("name")
        if not name:
            raise CatalogError("category without a name", source)
        rules = tuple(
            _compile_rule(raw_rule, name, i, source)
            for i, raw_rule in enumerate(raw_category.get("rules") or [])
        )
        categories.append(PatternCategory(
            name=name,
            rules=rules,
            description=str(raw_category.get("description") or "").strip(),
            exempt_paths=_compile_patterns(
                raw_category.get("exempt_paths"), DEFAULT_FLAGS, f"{source}:{name}"
            ),
        ))
    return categories


_DEFAULT_LIBRARY: Optional[PatternLibrary] = None


def get_default_library() -> PatternLibrary:
    """The bundled catalogs, compiled once per process."""
    global _DEFAULT_LIBRARY
    if _DEFAULT_LIBRARY is None:
        _DEFAULT_LIBRARY = PatternLibrary.load()
    return _DEFAULT_LIBRARY


def detect(content: Optional[str], path: Optional[str] = None, **kwargs) -> list[Detection]:
    """Run the bundled catalogs over content and path."""
    return get_default_library().detect(content, path, **kwargs)


def would_match(
    text: str,
    categories: Optional[Iterable[str]] = None,
    library: Optional[PatternLibrary] = None,
) -> Optional[tuple[str, str]]:
    """Check text against content rules without building detections.

    Returns:
        (category, rule id) of the first matching content rule, or None
    """
    library = (library or get_default_library()).subset(categories)
    for category in library.values():
        for rule in category.rules:
            if rule.target == RuleTarget.CONTENT and match_rule(rule, text):
                return category.name, rule.id
    return None
