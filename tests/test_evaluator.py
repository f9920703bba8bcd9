"""Tests for the rule evaluator."""

from unittest.mock import patch

from warden.evaluator import RuleEvaluator, is_skipped_path
from warden.normalizer import normalize_payload
from warden.patterns import PatternCategory
from warden.types import UNEVALUABLE, Invocation, OperationKind


def _create(path, content):
    return Invocation(operation_kind=OperationKind.CREATE_FILE, target_path=path, content=content)


class TestSkipList:
    """Generated directories and non-code files."""

    def test_vendor_directories(self):
        assert is_skipped_path("node_modules/react/index.js")
        assert is_skipped_path("/abs/project/.git/config")
        assert is_skipped_path("dist/bundle.js")

    def test_non_code_extensions(self):
        assert is_skipped_path("public/logo.PNG")
        assert is_skipped_path("app.js.map")
        assert is_skipped_path("package-lock.json")

    def test_code_files_not_skipped(self):
        assert not is_skipped_path("src/build_utils.ts")
        assert not is_skipped_path("lib/auth.ts")
        assert not is_skipped_path(None)


class TestRuleEvaluator:
    """RuleEvaluator.evaluate()."""

    def test_unevaluable_yields_nothing(self, small_library):
        assert RuleEvaluator(small_library).evaluate(UNEVALUABLE) == []

    def test_detections_in_category_order(self, small_library):
        found = RuleEvaluator(small_library).evaluate(_create("lib/a_copy.ts", "DANGER meh"))
        assert [d.rule_id for d in found] == ["alpha-high", "alpha-low", "beta-path"]

    def test_category_selection(self, small_library):
        found = RuleEvaluator(small_library, ["beta"]).evaluate(_create("lib/a_copy.ts", "DANGER"))
        assert [d.category for d in found] == ["beta"]

    def test_empty_category_list_runs_nothing(self, small_library):
        assert RuleEvaluator(small_library, []).evaluate(_create("a_copy.ts", "DANGER")) == []

    def test_skipped_path(self, small_library):
        assert RuleEvaluator(small_library).evaluate(_create("node_modules/x/a.js", "DANGER")) == []

    def test_exempt_category_path(self, small_library):
        found = RuleEvaluator(small_library).evaluate(_create("vendor/a_copy.ts", "meh"))
        assert [d.rule_id for d in found] == ["alpha-low"]

    def test_absolute_path_made_relative(self, library, project):
        """Path rules anchored at the project root see relative paths."""
        evaluator = RuleEvaluator(library, ["project-structure"], project_root=project)
        found = evaluator.evaluate(_create(str(project / "helpers.ts"), "export const x = 1"))
        assert [d.rule_id for d in found] == ["code-in-root"]

    def test_edit_before_text_never_flagged(self, library):
        """Removing a secret is not reported; only the new text is scanned."""
        invocation = Invocation(
            operation_kind=OperationKind.EDIT_FILE,
            target_path="lib/auth.ts",
            before_text='const apiKey = "sk-aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa";',
            after_text="const apiKey = process.env.API_KEY;",
        )
        assert RuleEvaluator(library, ["secret-exposure"]).evaluate(invocation) == []

    def test_command_rules_see_command_line(self, library):
        invocation = Invocation(operation_kind=OperationKind.RUN_COMMAND, command_line="rm -rf /")
        found = RuleEvaluator(library, ["dangerous-command"]).evaluate(invocation)
        assert found[0].rule_id == "rm-rf-root"

    def test_intent_rules_see_intent(self, library):
        invocation = Invocation(
            operation_kind=OperationKind.EDIT_FILE,
            target_path="lib/a.ts",
            after_text="x",
            intent_text="Migrate all components to the new API",
        )
        found = RuleEvaluator(library, ["scope-creep"]).evaluate(invocation)
        assert [d.rule_id for d in found] == ["large-migration"]

    def test_failing_category_is_isolated(self, small_library, caplog):
        """One broken category does not stop the others."""
        def boom(self, *args, **kwargs):
            if self.name == "alpha":
                raise RuntimeError("broken rule")
            return original(self, *args, **kwargs)

        original = PatternCategory.detect
        with patch.object(PatternCategory, "detect", boom):
            found = RuleEvaluator(small_library).evaluate(_create("a_copy.ts", "DANGER"))
        assert [d.category for d in found] == ["beta"]
        assert "alpha" in caplog.text




class TestDevelopmentMode:
    """Development mode lifts only the rule guarding warden's own source."""

    def test_self_protection_active_by_default(self, library):
        evaluator = RuleEvaluator(library, ["self-protection"])
        assert evaluator.evaluate(_create("src/warden/hooks.py", "x"))

    def test_development_mode_allows_engine_source(self, library):
        evaluator = RuleEvaluator(library, ["self-protection"], development_mode=True)
        assert evaluator.category_names == ["self-protection"]
        assert evaluator.evaluate(_create("src/warden/hooks.py", "x")) == []

    def test_development_mode_keeps_settings_and_state_protected(self, library):
        evaluator = RuleEvaluator(library, ["self-protection"], development_mode=True)
        settings = evaluator.evaluate(_create(".claude/settings.json", "{}"))
        state = evaluator.evaluate(_create(".warden/state.json", "{}"))
        assert [d.rule_id for d in settings] == ["hook-settings"]
        assert [d.rule_id for d in state] == ["warden-state"]


def _command(line):
    return normalize_payload({"tool_name": "Bash", "tool_input": {"command": line}})


class TestShellCommands:
    """Every path a command touches is checked, not just the first."""

    def test_later_write_target_caught(self, library):
        found = RuleEvaluator(library, ["naming-hygiene"]).evaluate(
            _command("echo ok > notes.txt && cp a.ts a_improved.ts")
        )
        assert [d.rule_id for d in found] == ["versioned-copy"]
        assert found[0].matched_text == "a_improved.ts"

    def test_removing_a_copy_is_allowed(self, library):
        evaluator = RuleEvaluator(library, ["naming-hygiene"])
        assert evaluator.evaluate(_command("rm lib/auth_improved.ts")) == []

    def test_removing_protected_state_caught(self, library):
        found = RuleEvaluator(library, ["self-protection"]).evaluate(_command("rm -rf .warden"))
        assert [d.rule_id for d in found] == ["warden-state"]

    def test_moving_engine_source_away_caught(self, library):
        found = RuleEvaluator(library, ["self-protection"]).evaluate(
            _command("mv src/warden/hooks.py /tmp/")
        )
        assert [d.rule_id for d in found] == ["engine-source"]

    def test_skipped_write_target_does_not_hide_command(self, library):
        """A log redirect does not exempt the rest of the command line."""
        found = RuleEvaluator(library, ["dangerous-command"]).evaluate(
            _command("echo x > out.log; rm -rf /")
        )
        assert "rm-rf-root" in [d.rule_id for d in found]
