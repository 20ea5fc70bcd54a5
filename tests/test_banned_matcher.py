from __future__ import annotations


def test_literal_pattern_is_case_insensitive_substring() -> None:
    from auto_accept.surface.matcher import is_banned, match_banned

    assert is_banned("sudo RM -RF / --no-preserve-root", ["rm -rf /"]) is True
    assert match_banned("echo hi", ["rm -rf /"]) is None


def test_regex_pattern_with_flags() -> None:
    from auto_accept.surface.matcher import is_banned

    assert is_banned("git push --force origin main", ["/git\\s+push\\s+--force/"]) is True
    assert is_banned("GIT PUSH --FORCE", ["/git push --force/i"]) is True
    # Explicit flags without `i` are case-sensitive.
    assert is_banned("GIT PUSH --FORCE", ["/git push --force/g"]) is False


def test_empty_flags_default_to_case_insensitive() -> None:
    from auto_accept.surface.matcher import compile_pattern

    regex = compile_pattern("/drop table/")
    assert regex is not None
    assert regex.search("DROP TABLE users")


def test_malformed_regex_falls_back_to_literal_without_raising() -> None:
    from auto_accept.surface.matcher import compile_pattern, is_banned

    assert compile_pattern("/([unclosed/") is None
    assert is_banned("run /([unclosed/ now", ["/([unclosed/"]) is True
    assert is_banned("harmless", ["/([unclosed/"]) is False


def test_unknown_flag_is_treated_as_literal() -> None:
    from auto_accept.surface.matcher import compile_pattern, is_banned

    assert compile_pattern("/rm/z") is None
    assert is_banned("rm -rf", ["/rm/z"]) is False
    assert is_banned("cat /rm/z", ["/rm/z"]) is True


def test_blank_patterns_and_empty_inputs() -> None:
    from auto_accept.surface.matcher import is_banned, match_banned

    assert is_banned("", ["rm"]) is False
    assert is_banned("rm -rf", []) is False
    assert is_banned("rm -rf", None) is False
    assert match_banned("rm -rf", ["", "   ", "rm"]) == "rm"


def test_first_match_wins() -> None:
    from auto_accept.surface.matcher import match_banned

    assert match_banned("dd if=/dev/zero of=/dev/sda", ["dd if=", "/dev/sda"]) == "dd if="


def test_single_slash_is_a_literal() -> None:
    from auto_accept.surface.matcher import compile_pattern, is_banned

    assert compile_pattern("/") is None
    assert is_banned("cd /", ["/"]) is True
