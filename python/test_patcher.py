"""
Tests for the sequential source patcher and the save policy.

Run: python3 test_patcher.py
From: python/
"""

import sys

sys.path.insert(0, '.')

from editmode.models import Commit, Edit, EditorConfig, FallbackReason, FallbackRequired
from editmode.patch.engine import SourcePatcher, _make_elastic_regex, patch_source
from editmode.patch.policy import decide, remove_marker_script
from editmode.utils.html import body_content_start

PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Welcome</title>
  <meta name="description" content="Hello world">
</head>
<body class="home"  data-x='1'>
  <h1 id=top>Welcome</h1>
  <p>Hello   world,
     this is   a test.</p>
  <p>Second paragraph.</p>
  <img src="a.png"/>
  <script src="edit-mode.js"></script>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Patcher
# ---------------------------------------------------------------------------

def test_empty_edit_set_is_identity():
    result = patch_source(PAGE, [])
    assert result.html == PAGE
    assert result.applied_count == 0
    assert result.unmatched_edits == []
    print("PASS: test_empty_edit_set_is_identity")


def test_single_edit_replaces_only_matched_span():
    """Irregular inner whitespace is consumed by the match; everything else is byte-identical."""
    edit = Edit(old_text="Hello world, this is a test.", new_text="Hi there.")
    result = patch_source(PAGE, [edit])

    original_span = "Hello   world,\n     this is   a test."
    assert result.applied_count == 1
    assert result.html == PAGE.replace(original_span, "Hi there.")
    print("PASS: test_single_edit_replaces_only_matched_span")


def test_whitespace_tolerance():
    source = "<body><p>Hello   world</p></body>"
    result = patch_source(source, [Edit(old_text="Hello world", new_text="Hello planet")])
    assert result.html == "<body><p>Hello planet</p></body>"
    print("PASS: test_whitespace_tolerance")


def test_head_is_never_patched():
    """'Welcome' appears in <title> first; only the body copy changes."""
    result = patch_source(PAGE, [Edit(old_text="Welcome", new_text="Hi")])
    assert "<title>Welcome</title>" in result.html
    assert "<h1 id=top>Hi</h1>" in result.html
    assert result.html.count("Welcome") == 1
    print("PASS: test_head_is_never_patched")


def test_missing_body_tag_patches_whole_buffer():
    source = "<div><span>One</span> <span>Two</span></div>"
    assert body_content_start(source) == 0
    result = patch_source(source, [Edit(old_text="Two", new_text="Deux")])
    assert result.html == "<div><span>One</span> <span>Deux</span></div>"
    print("PASS: test_missing_body_tag_patches_whole_buffer")


def test_cursor_retries_from_body_start():
    """Edits whose source order is reversed still land."""
    source = "<html><body><p>Alpha</p><p>Beta</p></body></html>"
    edits = [
        Edit(old_text="Beta", new_text="B2"),
        Edit(old_text="Alpha", new_text="A2"),
    ]
    result = patch_source(source, edits)
    assert result.applied_count == 2
    assert result.html == "<html><body><p>A2</p><p>B2</p></body></html>"
    print("PASS: test_cursor_retries_from_body_start")


def test_cursor_advances_past_replacement():
    patcher = SourcePatcher("<body><p>One</p><p>Two</p></body>")
    patcher.apply_edits([Edit(old_text="One", new_text="Uno")])
    assert patcher.cursor == len("<body><p>Uno")
    print("PASS: test_cursor_advances_past_replacement")


def test_duplicate_text_is_deterministic():
    """Best-effort: the first occurrence from the cursor wins, every time."""
    source = "<body><p>Same</p><p>Same</p></body>"
    first = patch_source(source, [Edit(old_text="Same", new_text="Other")])
    second = patch_source(source, [Edit(old_text="Same", new_text="Other")])
    assert first.html == second.html == "<body><p>Other</p><p>Same</p></body>"

    both = patch_source(source, [Edit(old_text="Same", new_text="X"), Edit(old_text="Same", new_text="Y")])
    assert both.html == "<body><p>X</p><p>Y</p></body>"
    print("PASS: test_duplicate_text_is_deterministic")


def test_unmatched_edit_is_reported_not_guessed():
    edit = Edit(old_text="Nowhere to be found", new_text="x")
    result = patch_source(PAGE, [edit, Edit(old_text="Second paragraph.", new_text="2nd.")])

    assert result.applied_count == 1
    assert len(result.unmatched_edits) == 1
    unmatched = result.unmatched_edits[0]
    assert unmatched.edit == edit
    assert unmatched.old_preview == "Nowhere to be found"
    assert unmatched.candidate_count == 0
    assert "<p>2nd.</p>" in result.html
    print("PASS: test_unmatched_edit_is_reported_not_guessed")


def test_text_inside_tags_is_never_patched():
    source = '<body><h1 id="Welcome">Welcome</h1><img alt="Welcome"></body>'
    result = patch_source(source, [Edit(old_text="Welcome", new_text="Hi")])
    assert result.html == '<body><h1 id="Welcome">Hi</h1><img alt="Welcome"></body>'
    assert result.applied_count == 1
    print("PASS: test_text_inside_tags_is_never_patched")


def test_attribute_only_occurrence_is_unmatched():
    source = '<body><a title="Read more" href="#">Continue</a></body>'
    edit = Edit(old_text="Read more", new_text="Keep reading")
    result = patch_source(source, [edit])
    assert result.applied_count == 0
    assert result.html == source
    assert result.unmatched_edits[0].candidate_count == 0

    decision = decide(result, [edit])
    assert isinstance(decision, FallbackRequired)
    assert decision.reason == FallbackReason.PARTIAL_PATCH
    print("PASS: test_attribute_only_occurrence_is_unmatched")


def test_candidate_count_includes_head_occurrences():
    source = "<html><head><title>Ghost</title></head><body><p>Visible</p></body></html>"
    result = patch_source(source, [Edit(old_text="Ghost", new_text="Spirit")])
    assert result.applied_count == 0
    assert result.unmatched_edits[0].candidate_count == 1
    assert result.html == source
    print("PASS: test_candidate_count_includes_head_occurrences")


def test_empty_and_identity_edits_are_skipped():
    edits = [
        Edit(old_text="", new_text="x"),
        Edit(old_text="Welcome", new_text=""),
        Edit(old_text="Welcome", new_text="Welcome"),
    ]
    result = patch_source(PAGE, edits)
    assert result.html == PAGE
    assert result.applied_count == 0
    assert len(result.skipped_edits) == 3
    assert result.unmatched_edits == []
    print("PASS: test_empty_and_identity_edits_are_skipped")


def test_regex_special_characters_match_literally():
    source = "<body><td>Price (USD) $5.00? [approx]</td><td>Price xUSDx 5500</td></body>"
    result = patch_source(source, [Edit(old_text="Price (USD) $5.00? [approx]", new_text="Price: $6")])
    assert result.html == "<body><td>Price: $6</td><td>Price xUSDx 5500</td></body>"
    print("PASS: test_regex_special_characters_match_literally")


def test_replacement_is_inserted_verbatim():
    source = "<body><p>path</p></body>"
    new_text = r"C:\temp\1 & <b>"
    result = patch_source(source, [Edit(old_text="path", new_text=new_text)])
    assert result.html == "<body><p>" + new_text + "</p></body>"
    print("PASS: test_replacement_is_inserted_verbatim")


def test_elastic_regex_shape():
    assert _make_elastic_regex("   ") is None
    pattern = _make_elastic_regex("a.b  c")
    assert pattern.pattern == r"a\.b\s+c"
    assert pattern.search("xx a.b\n\t c yy")
    assert not pattern.search("axb c")
    print("PASS: test_elastic_regex_shape")


# ---------------------------------------------------------------------------
# Save policy
# ---------------------------------------------------------------------------

def test_policy_no_source():
    decision = decide(None, [Edit(old_text="a", new_text="b")])
    assert isinstance(decision, FallbackRequired)
    assert decision.reason == FallbackReason.NO_SOURCE
    assert decision.result is None
    print("PASS: test_policy_no_source")


def test_policy_all_or_nothing():
    edits = [
        Edit(old_text="Second paragraph.", new_text="2nd."),
        Edit(old_text="Not in the page", new_text="x"),
    ]
    result = patch_source(PAGE, edits)
    assert result.applied_count < len(edits)

    decision = decide(result, edits)
    assert isinstance(decision, FallbackRequired)
    assert decision.reason == FallbackReason.PARTIAL_PATCH
    assert decision.result == result
    print("PASS: test_policy_all_or_nothing")


def test_policy_skipped_edit_forces_fallback():
    """An edit that empties a node cannot be patched, so the save falls back."""
    edits = [Edit(old_text="Second paragraph.", new_text="")]
    decision = decide(patch_source(PAGE, edits), edits)
    assert isinstance(decision, FallbackRequired)
    assert decision.reason == FallbackReason.PARTIAL_PATCH
    print("PASS: test_policy_skipped_edit_forces_fallback")


def test_policy_commit_strips_marker():
    edits = [Edit(old_text="Second paragraph.", new_text="2nd.")]
    decision = decide(patch_source(PAGE, edits), edits)

    assert isinstance(decision, Commit)
    assert "edit-mode.js" not in decision.html
    expected = PAGE.replace("Second paragraph.", "2nd.").replace(
        '\n  <script src="edit-mode.js"></script>\n', "\n"
    )
    assert decision.html == expected
    print("PASS: test_policy_commit_strips_marker")


def test_policy_commit_can_retain_marker():
    edits = [Edit(old_text="Second paragraph.", new_text="2nd.")]
    decision = decide(patch_source(PAGE, edits), edits, EditorConfig(strip_marker=False))
    assert isinstance(decision, Commit)
    assert decision.html == PAGE.replace("Second paragraph.", "2nd.")
    print("PASS: test_policy_commit_can_retain_marker")


def test_remove_marker_script_leaves_other_scripts():
    html = '<p>x</p>\n<script src="app.js"></script>\n<script defer src="/js/edit-mode.min.js"></script>\n</body>'
    cleaned = remove_marker_script(html)
    assert '<script src="app.js"></script>' in cleaned
    assert "edit-mode" not in cleaned
    assert cleaned == '<p>x</p>\n<script src="app.js"></script>\n</body>'
    print("PASS: test_remove_marker_script_leaves_other_scripts")


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    tests = [
        test_empty_edit_set_is_identity,
        test_single_edit_replaces_only_matched_span,
        test_whitespace_tolerance,
        test_head_is_never_patched,
        test_missing_body_tag_patches_whole_buffer,
        test_cursor_retries_from_body_start,
        test_cursor_advances_past_replacement,
        test_duplicate_text_is_deterministic,
        test_unmatched_edit_is_reported_not_guessed,
        test_text_inside_tags_is_never_patched,
        test_attribute_only_occurrence_is_unmatched,
        test_candidate_count_includes_head_occurrences,
        test_empty_and_identity_edits_are_skipped,
        test_regex_special_characters_match_literally,
        test_replacement_is_inserted_verbatim,
        test_elastic_regex_shape,
        test_policy_no_source,
        test_policy_all_or_nothing,
        test_policy_skipped_edit_forces_fallback,
        test_policy_commit_strips_marker,
        test_policy_commit_can_retain_marker,
        test_remove_marker_script_leaves_other_scripts,
    ]

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {test.__name__}: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print(f"\n{'='*60}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed > 0:
        sys.exit(1)
    else:
        print("ALL TESTS PASSED")
